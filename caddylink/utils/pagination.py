# caddylink/utils/pagination.py
import math
from caddylink.exceptions import ValidationError

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def paginate(query, page=1, limit=DEFAULT_PAGE_SIZE):
    """
    先計算總筆數再以 offset / limit 取出該頁
    回傳 (items, pagination)，pagination 含 page / limit / total / total_pages。
    """
    page = 1 if page is None else page
    limit = DEFAULT_PAGE_SIZE if limit is None else limit
    if page < 1:
        raise ValidationError('page must be >= 1')
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f'limit must be between 1 and {MAX_PAGE_SIZE}')

    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': math.ceil(total / limit),
    }
