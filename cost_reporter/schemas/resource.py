"""Unused resource and scan outcome schemas."""

from collections import Counter

from pydantic import BaseModel, ConfigDict, Field

from cost_reporter.schemas.account import AccountIdentity


class UnusedResource(BaseModel):
    """A resource flagged as idle or unused by a checker."""

    model_config = ConfigDict(frozen=True)

    service: str = Field(description="Service label (e.g., 'Amazon EC2')")
    resource_id: str = Field(description="Unique resource identifier")
    resource_name: str | None = Field(default=None, description="Human-readable name")
    region: str = Field(description="AWS region")
    cost: float = Field(default=0.0, description="Filled in by billing, always 0 at detection")
    reason: str = Field(description="Why the resource was flagged")
    account_id: str | None = None
    account_name: str | None = None

    def tagged(self, account: AccountIdentity) -> "UnusedResource":
        """Return a copy carrying the account identity."""
        return self.model_copy(update={"account_id": account.id, "account_name": account.name})


class ScanOutcome(BaseModel):
    """Resources found plus the number of failures encountered while finding them."""

    resources: list[UnusedResource] = Field(default_factory=list)
    error_count: int = 0

    def merge(self, other: "ScanOutcome") -> "ScanOutcome":
        """Combine two outcomes without mutating either."""
        return ScanOutcome(
            resources=[*self.resources, *other.resources],
            error_count=self.error_count + other.error_count,
        )

    @classmethod
    def combine(cls, outcomes: list["ScanOutcome"]) -> "ScanOutcome":
        """Merge a list of outcomes."""
        combined = cls()
        for outcome in outcomes:
            combined = combined.merge(outcome)
        return combined

    @property
    def degraded(self) -> bool:
        """True when at least one checker, region or account failed."""
        return self.error_count > 0

    def count_by_service(self) -> dict[str, int]:
        return dict(Counter(r.service for r in self.resources))

    def count_by_account(self) -> dict[str, int]:
        return dict(Counter(r.account_name or r.account_id or "unknown" for r in self.resources))


def tag_resources(
    resources: list[UnusedResource], account: AccountIdentity
) -> list[UnusedResource]:
    """Attach account identity to every resource (pure transform)."""
    return [resource.tagged(account) for resource in resources]
