from sqlalchemy.types import String, TypeDecorator


class Uint256String(TypeDecorator):
    """uint256 stored as a base-10 string.

    Python side is always ``int`` so values wider than 2**64 never pass
    through a float. VARCHAR(78) fits the largest uint256.
    """
    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)
