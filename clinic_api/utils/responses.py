from flask import jsonify


def success_response(message, data=None, status_code=200, **extra):
    """Build the standard success envelope: {success, message, data}."""
    body = {
        'success': True,
        'message': message,
        'data': data if data is not None else {},
    }
    body.update(extra)
    return jsonify(body), status_code


def pagination_meta(page, limit, total):
    pages = (total + limit - 1) // limit if limit else 0
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': pages,
        'has_next': page < pages,
        'has_prev': page > 1,
    }


def get_pagination_args(args, default_limit=10, max_limit=100):
    """Read page/limit query params and clamp them like the list endpoints expect."""
    page = args.get('page', 1, type=int)
    limit = args.get('limit', default_limit, type=int)
    if page < 1:
        page = 1
    if limit < 1 or limit > max_limit:
        limit = default_limit
    return page, limit
