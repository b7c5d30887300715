DEFAULT_SPECIAL_ID_PREFIX = "CR"
SPECIAL_ID_MIN_WIDTH = 2

# значение classVideoUrl, которое означает "удалить текущее видео"
DELETE_VIDEO_SENTINEL = "__DELETE__"

UPLOADS_URL_PREFIX = "/uploads/"

# ключи таблицы settings
SETTINGS_COLUMN_VISIBILITY = "column_visibility"
SETTINGS_SHEETS_URL = "google_sheets_url"
SETTINGS_SHEETS_AUTO_SYNC = "google_sheets_auto_sync"
SETTINGS_LAST_ORDER_ID = "lastOrderId"

DEFAULT_COLUMN_VISIBILITY = {
    "specialId": True,
    "mainCategory": True,
    "quality": True,
    "className": True,
    "classNameArabic": False,
    "classNameEnglish": False,
    "classFeatures": True,
    "classWeight": True,
    "classQuantity": True,
    "classPrice": True,
    "classVideo": True,
}

# canonical payload key -> spreadsheet headers, first non-empty wins
COLUMN_ALIASES = {
    "specialId": ("Special ID", "specialId", "special_id"),
    "mainCategory": ("Main Category", "mainCategory", "main_category"),
    "quality": ("Group", "group", "Quality", "quality"),
    "className": ("Class Name", "className", "class_name"),
    "classNameArabic": ("Class Name Arabic", "classNameArabic", "class_name_ar"),
    "classNameEnglish": ("Class Name English", "classNameEnglish", "class_name_en"),
    "classFeatures": ("Class Features", "classFeatures", "class_features"),
    "classPrice": ("Class Price", "classPrice", "class_price"),
    "classWeight": ("Class KG", "class_weight", "Class Weight", "classWeight", "Class Weight (kg)"),
    "classQuantity": ("Class Quantity", "classQuantity", "Quantity", "quantity", "class_quantity"),
    "classVideoUrl": ("Class Video", "classVideo", "class_video"),
}

CATALOG_EXPORT_HEADER = (
    "Special ID",
    "Main Category",
    "Group",
    "Class Name",
    "Class Name Arabic",
    "Class Name English",
    "Class Features",
    "Class Price",
    "Class Weight (kg)",
    "Class Quantity",
    "Class Video",
)

ORDER_EXPORT_HEADER = (
    "Order ID",
    "Date",
    "Code",
    "Group",
    "Product Name",
    "Quantity",
    "Unit Price",
    "Subtotal",
)

LANGUAGES = ("en", "ar", "es")

# (en, ar, es)
LABELS = {
    "order_form": ("Order Form", "نموذج الطلب", "Formulario de Pedido"),
    "full_name": ("Full name", "الاسم الكامل", "Nombre completo"),
    "company": ("Company", "الشركة", "Empresa"),
    "phone": ("Phone", "الهاتف", "Teléfono"),
    "sales_person": ("Sales person", "مندوب المبيعات", "Vendedor"),
    "notes": ("Notes", "ملاحظات", "Notas"),
    "code": ("Code", "الرمز", "Código"),
    "product": ("Product", "المنتج", "Producto"),
    "qty": ("Qty", "الكمية", "Cant."),
    "price": ("Price", "السعر", "Precio"),
    "subtotal": ("Subtotal", "المجموع الفرعي", "Subtotal"),
    "total_items": ("Total items", "إجمالي القطع", "Total de artículos"),
    "order_total": ("Order total", "إجمالي الطلب", "Total del pedido"),
    "partial_total": (
        "Partial total (prices missing)",
        "المجموع الجزئي (أسعار ناقصة)",
        "Total parcial (faltan precios)",
    ),
    "total": ("Total", "الإجمالي", "Total"),
}
