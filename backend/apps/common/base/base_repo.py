# apps/common/base/base_repo.py

from __future__ import annotations

from abc import ABC
from typing import Any, Generic, Iterable, Mapping, Optional, TypeVar

from django.db.models import F, Model, QuerySet

from apps.common.exceptions import NotFoundError

T = TypeVar("T", bound=Model)


class BaseRepo(ABC, Generic[T]):
    """
    Repository（数据访问层）基类：
    - 业务目标：统一封装 Django ORM 读写细节，给 Service 提供稳定接口
    - 模块角色：集中管理查询配置，并提供账本所需的原子写入原语
      （行锁读取、条件更新、原子自增、序号分配），避免“先读再写”的并发漏洞
    - 用法示例：class AuctionRepo(BaseRepo[Auction]): model = Auction
    """

    #: 子类必须指定对应的模型
    model: type[T]

    #: 资源不存在时的提示语，子类可覆盖
    not_found_message: str = "资源不存在"

    # ------------------------
    # QuerySet 构建
    # ------------------------

    def get_queryset(self) -> QuerySet[T]:
        """
        返回默认 QuerySet，子类可覆盖以附加 select_related/prefetch/filter
        """
        if not getattr(self, "model", None):
            raise NotImplementedError("BaseRepo 子类必须声明 model 属性")
        return self.model._default_manager.all()

    def filter(self, *, queryset: Optional[QuerySet[T]] = None, **filters) -> QuerySet[T]:
        """
        通用过滤入口，允许注入自定义 QuerySet
        """
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.filter(**filters)

    def list(self, **filters) -> Iterable[T]:
        """
        返回满足条件的对象列表，默认直接使用 filter
        """
        return self.filter(**filters)

    def get_by_id(self, pk: Any, *, queryset: Optional[QuerySet[T]] = None) -> T:
        """
        根据主键获取对象，不存在时抛业务级 404
        """
        qs = queryset if queryset is not None else self.get_queryset()
        try:
            return qs.get(pk=pk)
        except self.model.DoesNotExist as exc:  # type: ignore[attr-defined]
            raise NotFoundError(message=self.not_found_message) from exc

    def get_or_none(self, *, queryset: Optional[QuerySet[T]] = None, **filters) -> Optional[T]:
        """
        返回符合条件的单个对象，未命中则为 None
        """
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.filter(**filters).first()

    def exists(self, **filters) -> bool:
        """
        判断是否存在满足条件的记录
        """
        return self.filter(**filters).exists()

    def count(self, **filters) -> int:
        """
        返回满足条件的记录数
        """
        return self.filter(**filters).count()

    # ------------------------
    # 写操作
    # ------------------------

    def create(self, data: dict) -> T:
        """
        创建记录；若需写入额外字段，可在子类中统一处理
        """
        return self.model._default_manager.create(**data)

    def update(self, instance: T, data: dict) -> T:
        """
        批量更新字段并保存，返回最新实例
        注意：该方法为无条件覆盖，不得用于参与不变量的字段（状态、价格、累计积分）
        """
        for field, value in data.items():
            setattr(instance, field, value)
        if data:
            instance.save(update_fields=list(data.keys()))
        else:
            instance.save()
        return instance

    def delete(self, instance: T) -> None:
        """
        默认调用硬删除
        """
        instance.delete()

    # ------------------------
    # 原子写入原语（需在事务内调用）
    # ------------------------

    def lock(self, pk: Any) -> T:
        """
        行锁读取：select_for_update 锁定单行直到事务结束，用于按实体串行化审核类操作
        """
        return self.get_by_id(pk, queryset=self.model._default_manager.select_for_update())

    def compare_and_set(self, pk: Any, expected: Mapping[str, Any], values: Mapping[str, Any]) -> bool:
        """
        条件更新：仅当当前行仍满足 expected 时写入 values
        - 返回是否命中（False 表示已被并发请求修改，调用方应视为冲突）
        - expected 支持 ORM 查找语法，如 {"status__in": [...]}
        """
        updated = self.model._default_manager.filter(pk=pk, **dict(expected)).update(**dict(values))
        return updated == 1

    def increment(self, pk: Any, field: str, amount: int) -> int:
        """
        原子自增：UPDATE ... SET field = field + amount，返回自增后的值
        - 同一事务内回读，行锁由 UPDATE 持有至提交
        """
        updated = self.model._default_manager.filter(pk=pk).update(**{field: F(field) + amount})
        if updated != 1:
            raise NotFoundError(message=self.not_found_message)
        return self.model._default_manager.filter(pk=pk).values_list(field, flat=True).get()

    def next_sequence(self, pk: Any, field: str) -> int:
        """
        序号分配：对父实体上的计数字段原子 +1 并返回新值（从 1 开始、严格递增、不重复）
        """
        return self.increment(pk, field, 1)
