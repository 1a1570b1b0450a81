from pydantic import BaseModel, Field, field_validator


class AnalyzeRequest(BaseModel):
    """Incoming request to /analyze."""
    symbol: str = Field(
        ...,
        min_length=1,
        max_length=12,
        description="Ticker symbol e.g. 'AAPL'",
        examples=["AAPL", "MSFT", "^GSPC"],
    )

    @field_validator("symbol")
    @classmethod
    def normalize(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("symbol cannot be empty")
        return value


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    services: dict = Field(default_factory=dict)
