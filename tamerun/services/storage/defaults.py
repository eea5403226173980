"""Categories every new store is seeded with."""

from tamerun.models.finance import Category, TransactionType


# (name, icon, type) in display order; ids are assigned 1..n
_DEFAULT_CATEGORY_ROWS = [
    ("Food", "🍚", TransactionType.EXPENSE),
    ("Transport", "🚃", TransactionType.EXPENSE),
    ("Entertainment", "🎮", TransactionType.EXPENSE),
    ("Daily goods", "🧴", TransactionType.EXPENSE),
    ("Medical", "🏥", TransactionType.EXPENSE),
    ("Utilities", "💡", TransactionType.EXPENSE),
    ("Communication", "📱", TransactionType.EXPENSE),
    ("Rent", "🏠", TransactionType.EXPENSE),
    ("Education", "📚", TransactionType.EXPENSE),
    ("Other", "📦", TransactionType.EXPENSE),
    ("Salary", "💴", TransactionType.INCOME),
    ("Bonus", "🎁", TransactionType.INCOME),
    ("Side job", "💼", TransactionType.INCOME),
    ("Investment", "📈", TransactionType.INCOME),
    ("Other", "💰", TransactionType.INCOME),
]


def _build_default_categories() -> list[Category]:
    categories = []
    order = {TransactionType.EXPENSE: 0, TransactionType.INCOME: 0}
    for index, (name, icon, transaction_type) in enumerate(_DEFAULT_CATEGORY_ROWS, start=1):
        order[transaction_type] += 1
        categories.append(Category(
            category_id=index,
            name=name,
            icon=icon,
            type=transaction_type,
            display_order=order[transaction_type],
        ))
    return categories


DEFAULT_CATEGORIES: list[Category] = _build_default_categories()
