"""Editable receipt wording, payment labels and user-facing messages."""

from __future__ import annotations

PAYMENT_METHOD_LABELS: dict[str, str] = {
    "Cash": "Tiền mặt",
    "Card": "Thẻ",
    "Banking": "Chuyển khoản",
}

ORDER_STATUS_LABELS: dict[str, str] = {
    "Ordering": "Đang phục vụ",
    "Paid": "Đã thanh toán",
    "Cancelled": "Đã hủy",
}

UNKNOWN_PRODUCT_NAME = "Unknown Product"
UNKNOWN_TABLE_NAME = "Không xác định"

# Per-kind document wording: title, subtitle, column headers, footer lines.
RECEIPT_TEXT: dict[str, dict[str, str | list[str]]] = {
    "kitchen_order": {
        "title": "ĐƠN HÀNG CHUẨN BỊ",
        "subtitle": "Kitchen Order",
        "columns": ["Món ăn", "SL"],
        "footer": ["VUI LÒNG CHUẨN BỊ CẨN THẬN"],
    },
    "temporary_receipt": {
        "title": "HÓA ĐƠN TẠM TÍNH",
        "subtitle": "Temporary Receipt",
        "columns": ["Món", "SL", "Thành tiền"],
        "footer": ["ĐÂY LÀ HÓA ĐƠN TẠM TÍNH", "Chưa thanh toán - Vui lòng giữ hóa đơn này"],
    },
    "customer_receipt": {
        "title": "HÓA ĐƠN THANH TOÁN",
        "subtitle": "Payment Receipt",
        "columns": ["Món", "SL", "Thành tiền"],
        "footer": ["CẢM ƠN QUÝ KHÁCH!", "Đã thanh toán - Hẹn gặp lại"],
    },
}

REPRINT_MARKER = "*** BẢN IN LẠI ***"
SHOP_SIGNATURE = "CoffeeBeer POS"

INFO_LABELS: dict[str, str] = {
    "order_number": "Số đơn",
    "table": "Bàn",
    "time": "Thời gian",
    "payment_time": "Thanh toán lúc",
    "cashier": "Thu ngân",
    "printed_at": "In lúc",
}

TOTAL_LABELS: dict[str, str] = {
    "running_total": "TỔNG TẠM TÍNH",
    "subtotal": "Tạm tính",
    "discount": "Giảm giá",
    "final": "TỔNG THANH TOÁN",
    "payment_method": "Phương thức",
}

MESSAGES: dict[str, str] = {
    "item_added": "Đã thêm món",
    "order_updated": "Đơn hàng đã được cập nhật",
    "item_removed": "Đã xóa món",
    "table_cleared": "Bàn đã được clear",
    "status_updated": "Cập nhật trạng thái thành công",
    "payment_success": "Thanh toán thành công",
    "printed": "Đã gửi lệnh in",
    "print_failed": "In thất bại, có thể in lại",
    "empty_cart": "Giỏ hàng đang trống",
    "no_table": "Chưa chọn bàn",
    "no_paid_order": "Chưa có hóa đơn đã thanh toán",
    "network": "Không thể kết nối tới server",
    "catalog_loaded": "Đã tải thực đơn",
}
