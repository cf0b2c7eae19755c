from dataclasses import dataclass


@dataclass(frozen=True)
class FleetId:
    """
    Value Object identifying a fleet (the auto scaling group behind one
    entry point).
    """
    value: str

    def __post_init__(self):
        if not self.value or not self.value.strip():
            raise ValueError("Fleet ID cannot be empty")

    def __str__(self):
        return self.value
