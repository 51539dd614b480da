ALL_CATEGORIES = "All"

CATEGORIES = (
    "Electronics",
    "Vehicles",
    "Furniture",
    "Fashion",
    "Books",
    "Home & Garden",
    "Services",
    "Other",
)


def is_known_filter(category: str) -> bool:
    return category == ALL_CATEGORIES or category in CATEGORIES
