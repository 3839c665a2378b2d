from ratekeeper.schemas.reviews import ReviewRead, ReviewSummary

__all__ = ["ReviewRead", "ReviewSummary"]
