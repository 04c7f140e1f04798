# app/domain/enums.py
import enum


class PromotionType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    BUY_X_GET_Y = "BUY_X_GET_Y"


class TargetType(str, enum.Enum):
    ALL = "ALL"
    PRODUCT = "PRODUCT"
    CATEGORY = "CATEGORY"
