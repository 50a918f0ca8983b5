# apps/common/base/base_schema.py

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Iterable, Optional, TypeVar

from apps.common.exceptions import ValidationError

SchemaType = TypeVar("SchemaType", bound="BaseSchema")


@dataclass
class BaseSchema(ABC):
    """
    业务 Schema / DTO 基类

    目的：
        - Service 的入参载体，视图层只负责把请求体转成 Schema；
        - 字段校验集中在 validate 中，出错抛 ValidationError

    子类示例：
        @dataclass
        class BidSchema(BaseSchema):
            amount: int

            def validate(self):
                self.amount = self.require_int("amount", self.amount, minimum=1)
    """

    #: 是否在 __post_init__ 中自动执行 validate
    auto_validate: ClassVar[bool] = False

    def __post_init__(self):
        if self.auto_validate:
            self.validate()

    @abstractmethod
    def validate(self) -> None:
        """
        子类实现字段/业务约束校验，出错时抛 BizError
        """

    # ------------------------
    # 校验小工具
    # ------------------------

    @staticmethod
    def require_int(name: str, value: Any, *, minimum: Optional[int] = None, allow_none: bool = False) -> Optional[int]:
        """
        将输入转换为整数；bool 不视为整数
        """
        if value is None or value == "":
            if allow_none:
                return None
            raise ValidationError(message=f"{name} 不能为空")
        if isinstance(value, bool):
            raise ValidationError(message=f"{name} 必须为整数")
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(message=f"{name} 必须为整数") from exc
        if isinstance(value, float) and number != value:
            raise ValidationError(message=f"{name} 必须为整数")
        if minimum is not None and number < minimum:
            raise ValidationError(message=f"{name} 不能小于 {minimum}")
        return number

    @staticmethod
    def require_float(name: str, value: Any) -> float:
        if value is None or value == "" or isinstance(value, bool):
            raise ValidationError(message=f"{name} 必须为数字")
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(message=f"{name} 必须为数字") from exc

    @staticmethod
    def require_text(name: str, value: Any, *, max_length: Optional[int] = None) -> str:
        text = (value or "").strip() if isinstance(value, str) or value is None else str(value).strip()
        if not text:
            raise ValidationError(message=f"{name} 不能为空")
        if max_length and len(text) > max_length:
            raise ValidationError(message=f"{name} 长度不能超过 {max_length}")
        return text

    @staticmethod
    def require_choice(name: str, value: Any, choices: Iterable[str]) -> str:
        allowed = list(choices)
        if value not in allowed:
            raise ValidationError(message=f"{name} 取值不合法", extra={"allowed": allowed})
        return value

    # ------------------------
    # 数据转换
    # ------------------------

    def to_dict(self, *, exclude_none: bool = False, exclude: Iterable[str] | None = None) -> Dict[str, Any]:
        data = asdict(self)
        if exclude_none:
            data = {key: value for key, value in data.items() if value is not None}
        for key in exclude or ():
            data.pop(key, None)
        return data

    @classmethod
    def from_dict(
            cls: type[SchemaType],
            data: Any,
            *,
            auto_validate: Optional[bool] = None,
    ) -> SchemaType:
        """
        将外部 payload 转为 Schema：未声明的键直接忽略
        """
        if not isinstance(data, dict):
            data = dict(data.items()) if hasattr(data, "items") else {}
        known = {f.name for f in fields(cls) if f.init}
        instance = cls(**{key: value for key, value in data.items() if key in known})  # type: ignore[arg-type]
        if auto_validate or (auto_validate is None and cls.auto_validate):
            instance.validate()
        return instance
