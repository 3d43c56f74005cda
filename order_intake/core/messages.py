"""
Client-facing message catalog.

All strings that reach the client go through ``message(key)`` so the
deployment locale decides the wording. Unknown locales fall back to English.
"""

from order_intake.core.config import get_settings

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "zh-TW": {
        "service_title": "餐廳點餐系統 API",
        "health_ok": "系統正常運行",
        "health_failed": "資料庫連線失敗",
        "menu_failed": "取得菜單失敗",
        "hot_items_failed": "取得本週熱銷商品失敗",
        "order_created": "訂單建立成功",
        "order_failed": "建立訂單失敗",
        "order_duplicate": "訂單編號已被使用，請重新取號",
        "order_not_found": "找不到訂單",
        "orders_failed": "取得訂單失敗",
        "used_numbers_failed": "取得已使用訂單號碼失敗",
        "invalid_request": "請求資料格式錯誤",
        "not_found": "找不到請求的資源",
        "internal_error": "內部伺服器錯誤",
    },
    "en": {
        "service_title": "Restaurant Order Intake API",
        "health_ok": "System operational",
        "health_failed": "Database connection failed",
        "menu_failed": "Failed to load menu",
        "hot_items_failed": "Failed to load this week's hot items",
        "order_created": "Order created successfully",
        "order_failed": "Failed to create order",
        "order_duplicate": "Order number already taken, please pick a new one",
        "order_not_found": "Order not found",
        "orders_failed": "Failed to load orders",
        "used_numbers_failed": "Failed to load used order numbers",
        "invalid_request": "Invalid request body",
        "not_found": "The requested resource was not found",
        "internal_error": "Internal server error",
    },
}


def message(key: str, locale: str | None = None) -> str:
    """
    Look up a client-facing message.

    Args:
        key: Message key, e.g. "order_created"
        locale: Override the configured locale

    Returns:
        The localized string, the English string, or the key itself
    """
    locale = locale or get_settings().locale
    catalog = MESSAGES.get(locale, MESSAGES[DEFAULT_LOCALE])
    return catalog.get(key) or MESSAGES[DEFAULT_LOCALE].get(key, key)
