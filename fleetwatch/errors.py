class FleetwatchError(Exception):
    """Base class for domain errors surfaced to callers."""


class VehicleNotFoundError(FleetwatchError):
    def __init__(self, vehicle_id: str) -> None:
        super().__init__(f"Vehicle not found: {vehicle_id}")
        self.vehicle_id = vehicle_id


class EmptyBatchError(FleetwatchError):
    def __init__(self) -> None:
        super().__init__("Batch must contain at least one telemetry record")
