"""Resolve a scanned code to an owner, optional vehicle and push destination."""

from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from avahanaa.common.logging import logger
from avahanaa.services.notify.errors import NotifyError
from avahanaa.services.notify.models import Owner, QrCode, Vehicle
from avahanaa.services.notify.schemas import NotifyRequest


@dataclass(frozen=True)
class ResolvedOwner:
    owner_id: str
    vehicle_id: str
    destination_token: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class VehicleCheck:
    """Outcome of the best-effort vehicle lookup.

    `restriction` blocks the notification; `diagnostic` only explains why the
    lookup itself could not run and is never fatal.
    """

    restriction: str | None = None
    diagnostic: str | None = None


def first_non_empty(*candidates) -> str:
    """Return the first candidate that is a non-blank string, trimmed."""

    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return ""


class OwnerResolver:
    """Walks the code -> owner -> vehicle lookup chain for one request."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def resolve(self, request: NotifyRequest) -> ResolvedOwner | NotifyError:
        try:
            return self._resolve(request)
        except SQLAlchemyError:
            logger.exception("owner resolution failed code_id=%s", request.code_id)
            return NotifyError.internal()

    def _resolve(self, request: NotifyRequest) -> ResolvedOwner | NotifyError:
        with self.session_factory() as db:
            code = db.get(QrCode, request.code_id)
            if code is None:
                return NotifyError.not_found("This QR code is not linked to any owner.")
            if code.active is False:
                return NotifyError.failed_precondition("This QR code has been deactivated.")

            embedded = code.metadata_ if isinstance(code.metadata_, dict) else {}
            owner_id = first_non_empty(
                code.owner_id,
                embedded.get("ownerId"),
                request.metadata.get("ownerId"),
                request.owner_id,
            )
            if not owner_id:
                return NotifyError.failed_precondition("This QR code has no linked owner.")
            vehicle_id = first_non_empty(
                code.vehicle_id,
                embedded.get("vehicleId"),
                request.metadata.get("vehicleId"),
                request.vehicle_id,
            )

            owner = db.get(Owner, owner_id)
            if owner is None:
                return NotifyError.not_found("The owner of this QR code could not be found.")
            if owner.notifications_enabled is False:
                return NotifyError.failed_precondition("The owner has turned off notifications.")
            token = first_non_empty(owner.destination_token, code.destination_token, request.destination_token)

        # One pooled connection per request: the code/owner session is closed before the vehicle read.
        if vehicle_id:
            check = self.check_vehicle(owner_id, vehicle_id)
            if check.diagnostic:
                logger.warning(
                    "vehicle restriction lookup skipped owner_id=%s vehicle_id=%s error=%s",
                    owner_id,
                    vehicle_id,
                    check.diagnostic,
                )
            if check.restriction:
                return NotifyError.failed_precondition(check.restriction)

        if not token:
            return NotifyError.failed_precondition("The owner has no device registered for notifications.")

        metadata = dict(request.metadata)
        metadata["ownerId"] = owner_id
        if vehicle_id:
            metadata["vehicleId"] = vehicle_id
        return ResolvedOwner(
            owner_id=owner_id,
            vehicle_id=vehicle_id,
            destination_token=token,
            metadata=metadata,
        )

    def check_vehicle(self, owner_id: str, vehicle_id: str) -> VehicleCheck:
        """Look up vehicle-level restrictions; a read error is reported, not raised."""

        try:
            with self.session_factory() as db:
                vehicle = db.get(Vehicle, (owner_id, vehicle_id))
        except SQLAlchemyError as exc:
            return VehicleCheck(diagnostic=str(exc))
        if vehicle is None:
            return VehicleCheck()
        if vehicle.active is False:
            return VehicleCheck(restriction="This vehicle is no longer active.")
        if vehicle.notifications_enabled is False:
            return VehicleCheck(restriction="Notifications are turned off for this vehicle.")
        return VehicleCheck()
