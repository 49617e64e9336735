"""
Location Session.

Stateful orchestrator for one form: holds current field values and their
sources, runs debounced reverse geocoding and arbitrates every write.

CRITICAL: Actions NEVER raise past their boundaries for runtime failures.
Network and device errors are logged and absorbed into state flags.

Concurrency model: single asyncio event loop. Suspension points are the
debounce timer, the provider request and the device position request. Only
the debounce timer is cancelled; an in-flight lookup always runs to the end.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Set, Union

from location_engine.config import EngineSettings, get_settings
from location_engine.models.geo_context import (
    Coordinates,
    Country,
    LocationSessionState,
    NormalizedGeocodeResult,
)
from location_engine.models.source import LocationField, LocationSource, LocationSourceKind
from location_engine.services.address_heuristics import extract_location_fields
from location_engine.services.browser_location import (
    BrowserLocationGateway,
    IPLocationGateway,
    LocationGatewayError,
    PositionOptions,
)
from location_engine.services.fallback_chain import ReverseGeocoder
from location_engine.services.field_arbitrator import should_accept

logger = logging.getLogger(__name__)

FieldName = Union[LocationField, str]


def _coerce_field(field: FieldName) -> LocationField:
    try:
        return LocationField(field)
    except ValueError:
        raise ValueError(
            f"Unknown location field: '{field}'. "
            f"Supported fields: {', '.join(f.value for f in LocationField)}"
        )


def _coerce_coordinates(value: Any) -> Coordinates:
    if isinstance(value, Coordinates):
        return value
    if isinstance(value, Mapping):
        return Coordinates.model_validate(value)
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return Coordinates(latitude=value[0], longitude=value[1])
    raise ValueError(f"Cannot interpret {value!r} as coordinates")


class LocationSession:
    """
    Location state of one form, fed by four competing sources.

    Every write goes through the field arbitrator. Reverse geocoding is
    debounced; a newer triggering action replaces a pending (not yet
    started) lookup.
    """

    def __init__(
        self,
        countries: Optional[Iterable[Country]] = None,
        seed: Optional[Mapping[FieldName, Any]] = None,
        geocoder: Optional[ReverseGeocoder] = None,
        gateway: Optional[BrowserLocationGateway] = None,
        settings: Optional[EngineSettings] = None,
    ):
        """
        Initialize a session.

        Args:
            countries: Country registry used for matching (never mutated)
            seed: Initial values, recorded without a source
            geocoder: Reverse geocoding chain, defaults to the public providers
            gateway: Device position gateway, defaults to IP geolocation
            settings: Engine settings, defaults to environment settings
        """
        self.settings = get_settings(settings)
        self.countries = tuple(countries or ())
        self.geocoder = geocoder or ReverseGeocoder(settings=self.settings)
        self.gateway = gateway or IPLocationGateway(settings=self.settings)

        seeded: Dict[LocationField, Any] = {}
        for field, value in (seed or {}).items():
            field = _coerce_field(field)
            seeded[field] = _coerce_coordinates(value) if field == LocationField.COORDINATES else value

        self._state = LocationSessionState(current=seeded)
        self._pending_timer: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._generation = 0
        self._reset_generation = 0

    # ------------------------------------------------------------------
    # Consumer-facing output
    # ------------------------------------------------------------------

    @property
    def state(self) -> LocationSessionState:
        """Read-only snapshot of the session state."""
        return self._state.model_copy(deep=True)

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return self._state.current.get(LocationField.COORDINATES)

    @property
    def is_location_ready(self) -> bool:
        coordinates = self.coordinates
        return (
            coordinates is not None
            and coordinates.latitude is not None
            and coordinates.longitude is not None
        )

    @property
    def has_manual_input(self) -> bool:
        return any(source.is_manual for source in self._state.sources.values())

    @property
    def country(self) -> Optional[Country]:
        """Registry entry of the current country_id, if any."""
        country_id = self._state.current.get(LocationField.COUNTRY_ID)
        if country_id is None:
            return None
        for country in self.countries:
            if str(country.id) == str(country_id):
                return country
        return None

    # ------------------------------------------------------------------
    # Field commit
    # ------------------------------------------------------------------

    def _offer(
        self,
        field: LocationField,
        value: Any,
        source: LocationSource,
        supersede_manual: bool = False,
    ) -> bool:
        existing = self._state.sources.get(field)
        # A forced lookup outranks stale manual entries
        arbitrated_against = None if supersede_manual and existing is not None and existing.is_manual else existing
        if not should_accept(arbitrated_against, source, self._state.policy.preserve_manual_input):
            logger.debug(
                f"Rejected {field.value}={value!r} from {source.kind.value} "
                f"(current source: {existing.kind.value})"
            )
            return False

        self._state.current[field] = value
        self._state.sources[field] = source
        logger.debug(f"Accepted {field.value}={value!r} from {source.kind.value}")
        return True

    def _commit_geocode_result(self, result: NormalizedGeocodeResult, forced: bool = False):
        processed = extract_location_fields(result, self.countries)
        if processed is None:
            logger.warning("Geocoding result has no matching country; no fields updated")
            return

        source = LocationSource.create(LocationSourceKind.GEOCODING)
        candidates = {
            LocationField.COUNTRY_ID: processed.country.id,
            LocationField.LOCALITY_NAME: processed.locality_name,
            LocationField.REGION_NAME: processed.region_name,
            LocationField.COMMUNITY_NAME: processed.community_name,
        }

        accepted = []
        for field, value in candidates.items():
            if value is None or value == "":
                continue
            if self._offer(field, value, source, supersede_manual=forced):
                accepted.append(field.value)

        logger.info(
            f"Geocoding via {result.provider or 'placeholder'} updated fields: "
            f"{', '.join(accepted) if accepted else 'none'}"
        )

    # ------------------------------------------------------------------
    # Geocode scheduling
    # ------------------------------------------------------------------

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_pending_timer(self):
        if self._pending_timer is not None and not self._pending_timer.done():
            self._pending_timer.cancel()
            logger.debug("Cancelled pending reverse geocode")
        self._pending_timer = None

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _schedule_geocode(self, coordinates: Coordinates) -> bool:
        """
        Debounce a reverse geocode; replaces any pending one.

        Returns:
            False if no event loop is running and nothing was scheduled
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                f"No running event loop; reverse geocode for {coordinates.latitude}, "
                f"{coordinates.longitude} not scheduled"
            )
            return False

        self._cancel_pending_timer()
        generation = self._next_generation()
        self._state.flags.is_geocoding_in_progress = True
        self._pending_timer = self._track(loop.create_task(self._debounce(coordinates, generation)))
        return True

    async def _debounce(self, coordinates: Coordinates, generation: int):
        await asyncio.sleep(self.settings.debounce_ms / 1000.0)
        self._pending_timer = None
        # Detached so that a later cancel() only ever hits a pending timer
        self._track(asyncio.get_running_loop().create_task(self._run_geocode(coordinates, generation)))

    async def _run_geocode(self, coordinates: Coordinates, generation: int, forced: bool = False):
        try:
            result = await self.geocoder.reverse_geocode(coordinates.latitude, coordinates.longitude)
        except Exception as e:
            logger.error(f"Reverse geocoding raised unexpectedly: {e}", exc_info=True)
            self._state.flags.is_geocoding_in_progress = False
            return

        self._state.flags.is_geocoding_in_progress = False

        if generation <= self._reset_generation:
            logger.info("Discarding geocoding result requested before the session was reset")
            return

        if self.settings.discard_stale_responses and generation != self._generation:
            logger.info(
                f"Discarding stale geocoding result for {coordinates.latitude}, {coordinates.longitude} "
                f"(request {generation}, latest {self._generation})"
            )
            return

        self._commit_geocode_result(result, forced)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def set_from_manual_input(self, field: FieldName, value: Any) -> bool:
        """
        Record a value typed by the user.

        Manual input always wins and never triggers geocoding.

        Raises:
            ValueError: Unknown field, or malformed coordinates
        """
        field = _coerce_field(field)
        if field == LocationField.COORDINATES:
            value = _coerce_coordinates(value)
        return self._offer(field, value, LocationSource.create(LocationSourceKind.MANUAL))

    def set_from_map_click(self, coordinates: Coordinates) -> bool:
        """
        Record a point picked on the map.

        Always schedules a reverse geocode, even when the coordinates
        themselves are rejected by arbitration.
        """
        coordinates = _coerce_coordinates(coordinates)
        accepted = self._offer(
            LocationField.COORDINATES,
            coordinates,
            LocationSource.create(LocationSourceKind.MAP_CLICK),
        )
        self._schedule_geocode(coordinates)
        return accepted

    def set_from_browser_location(self, coordinates: Coordinates) -> bool:
        """
        Record a device position fix.

        Schedules a reverse geocode only when the fix was accepted and the
        session uses the user's location by default.
        """
        coordinates = _coerce_coordinates(coordinates)
        accepted = self._offer(
            LocationField.COORDINATES,
            coordinates,
            LocationSource.create(LocationSourceKind.BROWSER_LOCATION),
        )
        if accepted and self._state.policy.use_user_location_by_default:
            self._schedule_geocode(coordinates)
        return accepted

    async def request_browser_location(self) -> Optional[Coordinates]:
        """
        Ask the gateway for a position fix and record it.

        Returns:
            The fix, or None if the device could not provide one or the
            session was reset while waiting for it
        """
        reset_generation = self._reset_generation
        self._state.flags.is_loading_browser_location = True
        try:
            coordinates = await self.gateway.get_current_position(PositionOptions.from_settings(self.settings))
        except LocationGatewayError as e:
            logger.warning(f"Could not get device location ({e.kind.value}): {e}")
            return None
        except Exception as e:
            logger.error(f"Device location gateway raised unexpectedly: {e}", exc_info=True)
            return None
        finally:
            self._state.flags.is_loading_browser_location = False

        if self._reset_generation != reset_generation:
            logger.info("Discarding device location fix requested before the session was reset")
            return None

        self.set_from_browser_location(coordinates)
        return coordinates

    async def force_re_geocode(self, coordinates: Coordinates):
        """
        Reverse geocode immediately, overriding stale manual entries.

        preserve_manual_input is suspended for the duration and restored to
        its prior value afterwards; fields currently held by manual input are
        overwritten by the result. Any pending debounced lookup is replaced.
        """
        coordinates = _coerce_coordinates(coordinates)
        policy = self._state.policy
        previous_preserve = policy.preserve_manual_input

        self._cancel_pending_timer()
        generation = self._next_generation()
        policy.preserve_manual_input = False
        self._state.flags.is_geocoding_in_progress = True
        try:
            await self._run_geocode(coordinates, generation, forced=True)
        finally:
            # reset() may have installed a fresh policy meanwhile
            policy.preserve_manual_input = previous_preserve

    def set_policy(
        self,
        use_user_location_by_default: Optional[bool] = None,
        preserve_manual_input: Optional[bool] = None,
    ):
        """Update policy flags; None leaves a flag unchanged."""
        if use_user_location_by_default is not None:
            self._state.policy.use_user_location_by_default = use_user_location_by_default
        if preserve_manual_input is not None:
            self._state.policy.preserve_manual_input = preserve_manual_input

    def reset(self):
        """Wipe all values and sources and restore the default policy."""
        self._cancel_pending_timer()
        # In-flight lookups finish but their results no longer apply
        self._reset_generation = self._next_generation()
        self._state = LocationSessionState()
        logger.info("Location session reset")

    async def wait_until_idle(self):
        """Wait for pending and in-flight lookups to finish."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))
