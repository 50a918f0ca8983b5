"""
业务异常体系（BizError）

约定与作用：
- 所有“预期内的业务错误”都继承 BizError，避免直接抛框架异常
- 统一错误码/HTTP 状态/提示语，便于前后端对齐
- 系统级错误（代码 bug、数据库故障等）由全局异常处理器按 500 处理

错误码规范：
- 0                : 成功（只出现在正常响应里）
- 40000~40099      : 通用请求 / 参数错误（Validation、BadRequest）
- 40100~40199      : 认证错误（未登录、Token 无效等）
- 40300~40399      : 权限错误（无权限访问某资源/操作）
- 40400~40499      : 资源不存在（用户、任务、拍卖等）
- 40900~40999      : 资源冲突（重复操作、状态冲突等）
- 42900~42999      : 频率限制（节流 / 风控）
- 47000~47099      : 队伍相关错误（未加入队伍等）
- 48200~48299      : 任务（Mission）提交相关错误
- 48300~48399      : 竞速（Race）相关错误
- 48400~48499      : 拍卖（Auction）相关错误
- 48500~48599      : 挑战（Challenge）计分相关错误
- 48600~48699      : 积分账本（Ledger）相关错误
- 50300~50399      : 基础设施/第三方依赖不可用（缓存、消息队列等）

并发冲突类错误（如出价价格已过期）在 extra 中带 retryable=True，
客户端可据此刷新最新状态后重试；引擎自身不做自动重试。

使用方式：
- 业务层抛 BizError 或子类；全局异常处理器读取 exc.code/message/http_status/extra 构造统一响应
"""


class BizError(Exception):
    """
    所有业务异常的基类

    设计要点：
    - 不耦合 DRF / Response，只是纯数据和语义；
    - 子类只需覆盖 default_code / default_message / http_status；
    - 也可以在 __init__ 时传入自定义 message / code / extra 做覆盖
    """

    #: 子类可覆盖的默认错误码
    default_code: int = 40000

    #: 子类可覆盖的默认提示信息
    default_message: str = "业务错误"

    #: 子类可覆盖的建议 HTTP 状态码（交给异常处理器用）
    http_status: int = 400

    def __init__(self, message: str | None = None, code: int | None = None, *, extra: dict | None = None):
        self.code = code if code is not None else self.default_code
        self.message = message if message is not None else self.default_message
        self.extra = extra or {}
        super().__init__(self.message)

    def __str__(self) -> str:  # 方便日志输出
        return f"[{self.code}] {self.message}"


class RetryableBizError(BizError):
    """
    并发冲突类错误基类：
    - 请求本身合法，但在提交时刻已被其他请求抢先修改
    - extra.retryable 固定为 True，客户端可刷新后重新提交
    """

    default_code = 40920
    default_message = "数据已被其他请求更新，请刷新后重试"
    http_status = 409

    def __init__(self, message: str | None = None, code: int | None = None, *, extra: dict | None = None):
        merged = {"retryable": True}
        merged.update(extra or {})
        super().__init__(message, code, extra=merged)


# ======================
# 通用类错误
# ======================

class BadRequestError(BizError):
    """
    通用的 400 错误：
    - 无法解析的请求
    - 请求格式错误/缺少头信息等
    """
    default_code = 40001
    default_message = "错误的请求"
    http_status = 400


class ValidationError(BizError):
    """
    参数校验 / 请求数据不合法：
    - 缺少必要字段
    - 字段格式错误
    """
    default_code = 40002
    default_message = "请求参数不合法"
    http_status = 400


class NotFoundError(BizError):
    """
    通用资源不存在：
    - 用户 / 队伍不存在
    - 任务、拍卖、挑战等 ID 对应的资源未找到
    """
    default_code = 40400
    default_message = "资源不存在"
    http_status = 404


class ConflictError(BizError):
    """
    资源冲突：
    - 已存在同名对象
    - 当前状态下不允许重复操作
    """
    default_code = 40900
    default_message = "资源冲突"
    http_status = 409


class OperationNotAllowedError(BizError):
    """
    当前状态不允许的操作：
    - 状态机中不存在的迁移
    """
    default_code = 40910
    default_message = "当前状态不允许执行该操作"
    http_status = 409


class RateLimitError(BizError):
    """
    触发频率限制 / 风控：
    - 出价太频繁
    - 提交太频繁
    """
    default_code = 42900
    default_message = "请求过于频繁，请稍后再试"
    http_status = 429


# ======================
# 认证 / 授权相关
# ======================

class AuthError(BizError):
    """
    认证相关错误（登录、Token 等）：
    - 统一归类为 401xx
    """
    default_code = 40100
    default_message = "认证失败"
    http_status = 401


class PermissionDeniedError(BizError):
    """
    权限不足：
    - 普通参与者调用管理员操作（结束拍卖、审核提交、发放积分）
    """
    default_code = 40300
    default_message = "无权限进行该操作"
    http_status = 403


# ======================
# 队伍领域错误
# ======================

class TeamError(BizError):
    """队伍相关通用错误基类"""
    default_code = 47000
    default_message = "队伍相关错误"
    http_status = 400


class TeamRequiredError(TeamError):
    """操作需要参与者已加入队伍（出价、竞速积分均记在队伍名下）"""
    default_code = 47001
    default_message = "请先加入队伍后再执行该操作"


class TeamNotMemberError(TeamError):
    """参与者不属于指定队伍"""
    default_code = 47003
    default_message = "该参与者不是此队伍成员"


# ======================
# 任务（Mission）领域错误
# ======================

class MissionError(BizError):
    """任务提交相关通用错误基类"""
    default_code = 48200
    default_message = "任务相关错误"
    http_status = 400


class MissionInactiveError(MissionError):
    """任务未启用"""
    default_code = 48201
    default_message = "任务未启用"


class MissionOutsideWindowError(MissionError):
    """当前时间不在任务开放时间窗内"""
    default_code = 48202
    default_message = "当前不在任务开放时间内"


class MissionAlreadyCompletedError(MissionError):
    """任务已完成（含测验的唯一一次作答已用完）"""
    default_code = 48203
    default_message = "该任务已完成，无需重复提交"
    http_status = 409


class MissionAlreadyPendingError(MissionError):
    """存在待审核的提交"""
    default_code = 48204
    default_message = "已有提交正在等待审核"
    http_status = 409


class MissionCompletionLimitError(MissionError):
    """完成次数已达上限"""
    default_code = 48205
    default_message = "已达到该任务的完成次数上限"
    http_status = 409


class InvalidEvidenceError(MissionError):
    """凭证不合法：二维码不匹配、不在定位范围内等"""
    default_code = 48206
    default_message = "提交的凭证无效"


class SubmissionAlreadyResolvedError(MissionError):
    """提交已被审核（非待审核状态），拒绝再次审核"""
    default_code = 48207
    default_message = "该提交已处理，无法重复审核"
    http_status = 409


class MissionLevelTooLowError(MissionError):
    """参与者等级低于任务要求"""
    default_code = 48208
    default_message = "等级不足，暂不能提交该任务"
    http_status = 403


# ======================
# 竞速（Race）领域错误
# ======================

class RaceError(BizError):
    """竞速相关通用错误基类"""
    default_code = 48300
    default_message = "竞速相关错误"
    http_status = 400


class RaceNotStartedError(RaceError):
    """竞速尚未开始"""
    default_code = 48301
    default_message = "竞速尚未开始"


class RaceClosedError(RaceError):
    """竞速已停止，不再接受新的参赛提交"""
    default_code = 48302
    default_message = "竞速已结束，不再接受提交"


class RaceStateError(RaceError):
    """竞速启停状态不允许该操作（重复开始/重复停止）"""
    default_code = 48303
    default_message = "当前竞速状态不允许该操作"
    http_status = 409


# ======================
# 拍卖（Auction）领域错误
# ======================

class AuctionError(BizError):
    """拍卖相关通用错误基类"""
    default_code = 48400
    default_message = "拍卖相关错误"
    http_status = 400


class AuctionNotActiveError(AuctionError):
    """拍卖未处于进行中，无法出价"""
    default_code = 48401
    default_message = "拍卖未在进行中"
    http_status = 409


class BidTooLowError(AuctionError):
    """出价低于当前价格 + 最小加价幅度"""
    default_code = 48402
    default_message = "出价过低"


class StalePriceError(RetryableBizError):
    """出价基于的价格已过期（并发出价中落败），可刷新后重试"""
    default_code = 48403
    default_message = "当前价格已被其他出价刷新，请刷新后重试"


class AuctionAlreadyClosedError(AuctionError):
    """拍卖已结束或已取消，拒绝重复结算"""
    default_code = 48404
    default_message = "拍卖已结束，无法重复结算"
    http_status = 409


class AuctionStateError(AuctionError):
    """拍卖状态迁移不合法"""
    default_code = 48405
    default_message = "当前拍卖状态不允许该操作"
    http_status = 409


# ======================
# 挑战（Challenge）领域错误
# ======================

class ChallengeError(BizError):
    """挑战相关通用错误基类"""
    default_code = 48500
    default_message = "挑战相关错误"
    http_status = 400


class ChallengeAlreadyCompletedError(ChallengeError):
    """挑战已完成积分发放，禁止任何后续修改"""
    default_code = 48501
    default_message = "挑战已完成积分发放"
    http_status = 409


class NoResultsToScoreError(ChallengeError):
    """挑战没有任何成绩可计分"""
    default_code = 48502
    default_message = "挑战暂无成绩，无法计分"


class ParticipantCapExceededError(ChallengeError):
    """队伍参赛人数超过挑战上限"""
    default_code = 48503
    default_message = "该队伍参赛人数已达上限"
    http_status = 409


class ChallengeStateError(ChallengeError):
    """挑战状态迁移不合法或当前状态不接受成绩"""
    default_code = 48504
    default_message = "当前挑战状态不允许该操作"
    http_status = 409


# ======================
# 积分账本（Ledger）错误
# ======================

class LedgerError(BizError):
    """积分入账相关通用错误基类"""
    default_code = 48600
    default_message = "积分入账错误"
    http_status = 400


class DuplicateCreditError(LedgerError):
    """同一来源对同一对象重复入账（存储层兜底的幂等保护）"""
    default_code = 48601
    default_message = "该来源的积分已入账，拒绝重复发放"
    http_status = 409


class NegativeCreditError(LedgerError):
    """积分只增不减，不支持扣减"""
    default_code = 48602
    default_message = "积分入账金额不能为负数"


# ======================
# 基础设施 / 第三方服务错误
# ======================

class InfrastructureError(BizError):
    """
    基础设施或第三方依赖不可用：
    - 缓存 / 队列等依赖故障
    """
    default_code = 50300
    default_message = "系统服务暂时不可用，请稍后重试"
    http_status = 503


class CacheUnavailableError(InfrastructureError):
    """
    缓存（Redis 等）不可用：
    - 连接失败 / 超时 / 未启动
    """
    default_code = 50301
    default_message = "缓存服务暂时不可用，请稍后重试"
    http_status = 503


# ======================
# 工具函数
# ======================

def require(condition: bool, error: BizError) -> None:
    """
    小工具：用于在业务代码中快速断言业务条件

    用法：
        require(auction.status == Auction.Status.ACTIVE, AuctionNotActiveError())
    """
    if not condition:
        raise error
