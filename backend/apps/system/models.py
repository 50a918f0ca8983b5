from __future__ import annotations

import json
from typing import Any

from django.db import models


class SystemConfig(models.Model):
    """
    系统配置项模型
    - 场景：管理员在后台为竞赛规则参数（等级门槛、默认加价幅度、名次积分表等）设置运行期值，
      优先于 settings 默认值
    - 约束：仅存储可运行期覆盖的业务参数，启动依赖仍由环境变量提供
    """

    class ValueType(models.TextChoices):
        STRING = "string", "字符串"
        INT = "int", "整数"
        BOOL = "bool", "布尔"
        JSON = "json", "JSON"

    key = models.CharField("键", max_length=120, unique=True, db_index=True)
    value = models.TextField("配置值", blank=True, default="")
    value_type = models.CharField(
        "值类型", max_length=20, choices=ValueType.choices, default=ValueType.STRING
    )
    description = models.TextField("说明", blank=True)
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        verbose_name = "系统配置"
        verbose_name_plural = "系统配置"
        ordering = ["key"]

    def __str__(self) -> str:
        return self.key

    def cast_value(self) -> Any:
        """根据类型转换配置值，转换失败时返回原始字符串"""
        if self.value_type == self.ValueType.INT:
            try:
                return int(self.value)
            except (TypeError, ValueError):
                return self.value
        if self.value_type == self.ValueType.BOOL:
            return str(self.value).strip().lower() in {"1", "true", "yes", "on"}
        if self.value_type == self.ValueType.JSON:
            try:
                return json.loads(self.value)
            except json.JSONDecodeError:
                return self.value
        return self.value

    @staticmethod
    def dump_value(value: Any, value_type: str) -> str:
        """按类型把 Python 值序列化为存储字符串"""
        if value is None:
            return ""
        if value_type == SystemConfig.ValueType.JSON:
            return json.dumps(value, ensure_ascii=False)
        if value_type == SystemConfig.ValueType.BOOL:
            return "true" if value else "false"
        return str(value)
