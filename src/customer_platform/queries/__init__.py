from .user_projections import ProjectionTier, UserRelation, UserProjectionQueries, fold_accounts

__all__ = ["ProjectionTier", "UserRelation", "UserProjectionQueries", "fold_accounts"]
