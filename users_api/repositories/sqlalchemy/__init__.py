from .user import SqlAlchemyUserRepository

__all__ = ["SqlAlchemyUserRepository"]
