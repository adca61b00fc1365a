"""
Service Area Validation Service

Decides whether a home can book cleanings under the platform's service area.
Two modes are supported:
- list: ZIP codes (exact or prefix), whole states, or individual cities
- radius: great-circle distance from a center point

Uses zipcodes library for comprehensive US ZIP code data when a home has
no stored coordinates.
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

import zipcodes
from sqlalchemy.orm import Session

from ..models import ServiceAreaConfig, ServiceAreaConfigHistory, User, UserHome

logger = logging.getLogger(__name__)

# US state abbreviations to full names mapping
US_STATES = {
    'AL': 'Alabama', 'AK': 'Alaska', 'AZ': 'Arizona', 'AR': 'Arkansas', 'CA': 'California',
    'CO': 'Colorado', 'CT': 'Connecticut', 'DE': 'Delaware', 'FL': 'Florida', 'GA': 'Georgia',
    'HI': 'Hawaii', 'ID': 'Idaho', 'IL': 'Illinois', 'IN': 'Indiana', 'IA': 'Iowa',
    'KS': 'Kansas', 'KY': 'Kentucky', 'LA': 'Louisiana', 'ME': 'Maine', 'MD': 'Maryland',
    'MA': 'Massachusetts', 'MI': 'Michigan', 'MN': 'Minnesota', 'MS': 'Mississippi', 'MO': 'Missouri',
    'MT': 'Montana', 'NE': 'Nebraska', 'NV': 'Nevada', 'NH': 'New Hampshire', 'NJ': 'New Jersey',
    'NM': 'New Mexico', 'NY': 'New York', 'NC': 'North Carolina', 'ND': 'North Dakota', 'OH': 'Ohio',
    'OK': 'Oklahoma', 'OR': 'Oregon', 'PA': 'Pennsylvania', 'RI': 'Rhode Island', 'SC': 'South Carolina',
    'SD': 'South Dakota', 'TN': 'Tennessee', 'TX': 'Texas', 'UT': 'Utah', 'VT': 'Vermont',
    'VA': 'Virginia', 'WA': 'Washington', 'WV': 'West Virginia', 'WI': 'Wisconsin', 'WY': 'Wyoming',
    'DC': 'District of Columbia'
}

# Reverse mapping for lookups
STATE_NAMES_TO_ABBREV = {v.lower(): k for k, v in US_STATES.items()}

DEFAULT_OUTSIDE_AREA_MESSAGE = "We don't currently service this area. We're expanding soon!"
DEFAULT_RADIUS_MILES = 25
MAX_RADIUS_MILES = 500
EARTH_RADIUS_MILES = 3958.8


class ServiceAreaError(ValueError):
    """Raised when a submitted service area configuration is invalid"""


def _string_list(data: Dict[str, Any], key: str) -> List[str]:
    values = data.get(key) or []
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise ServiceAreaError(f"{key} must be a list of text values")
    return values


def _optional_number(value: Any) -> Optional[float]:
    """None or "" -> None; booleans, text and non-finite numbers raise ValueError"""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError("number must be finite")
    return number


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in miles"""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(a))


def normalize_zipcode(zipcode: Optional[str]) -> Optional[str]:
    """Normalize ZIP code to 5-digit format."""
    if not zipcode:
        return None

    # Remove all non-digits
    digits = re.sub(r'\D', '', str(zipcode))

    # Must be 5 or 9 digits (ZIP or ZIP+4)
    if len(digits) == 5:
        return digits
    elif len(digits) == 9:
        return digits[:5]
    return None


def normalize_state(state: Optional[str]) -> Optional[str]:
    """Accept "MA", "ma" or "Massachusetts" and return the 2-letter code"""
    if not state:
        return None
    state = state.strip()
    if state.upper() in US_STATES:
        return state.upper()
    return STATE_NAMES_TO_ABBREV.get(state.lower())


def get_zipcode_location(zipcode: str) -> Optional[Dict[str, Any]]:
    """
    Get location data for a ZIP code using the zipcodes library.
    Returns state, city and centroid coordinates.
    """
    zipcode = normalize_zipcode(zipcode)
    if not zipcode:
        return None

    try:
        zip_info = zipcodes.matching(zipcode)
    except (TypeError, ValueError) as e:
        logger.error(f"Error looking up ZIP code {zipcode}: {e}")
        return None

    if not zip_info:
        logger.debug(f"ZIP code {zipcode} not found in database")
        return None

    zip_data = zip_info[0]
    try:
        latitude = float(zip_data.get('lat'))
        longitude = float(zip_data.get('long'))
    except (TypeError, ValueError):
        latitude = longitude = None

    return {
        'state': (zip_data.get('state') or '').upper(),
        'city': zip_data.get('city'),
        'zipcode': zipcode,
        'latitude': latitude,
        'longitude': longitude,
    }


class ServiceAreaValidator:
    """Loads, validates and applies the platform service area configuration."""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # CONFIG
    # ========================================================================

    def get_active_config(self) -> Optional[ServiceAreaConfig]:
        return (
            self.db.query(ServiceAreaConfig)
            .filter(ServiceAreaConfig.is_active.is_(True))
            .order_by(ServiceAreaConfig.id.desc())
            .first()
        )

    def get_config_dict(self) -> Dict[str, Any]:
        """Active config in API shape; defaults (disabled) when none saved yet"""
        config = self.get_active_config()
        if not config:
            return {
                "enabled": False,
                "mode": "list",
                "cities": [],
                "states": [],
                "zipcodes": [],
                "centerAddress": None,
                "centerLatitude": None,
                "centerLongitude": None,
                "radiusMiles": DEFAULT_RADIUS_MILES,
                "outsideAreaMessage": DEFAULT_OUTSIDE_AREA_MESSAGE,
            }
        return {
            "enabled": config.enabled,
            "mode": config.mode,
            "cities": config.cities or [],
            "states": config.states or [],
            "zipcodes": config.zipcodes or [],
            "centerAddress": config.center_address,
            "centerLatitude": config.center_latitude,
            "centerLongitude": config.center_longitude,
            "radiusMiles": config.radius_miles,
            "outsideAreaMessage": config.outside_area_message or DEFAULT_OUTSIDE_AREA_MESSAGE,
        }

    @staticmethod
    def normalize_config(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a submitted config and return its cleaned form.

        Raises:
            ServiceAreaError: with a user-facing message
        """
        mode = data.get("mode") or "list"
        if not isinstance(mode, str) or mode not in ("list", "radius"):
            raise ServiceAreaError("Mode must be 'list' or 'radius'")

        cities = [c.strip() for c in _string_list(data, "cities") if c.strip()]
        states = []
        for state in _string_list(data, "states"):
            code = normalize_state(state)
            if not code:
                raise ServiceAreaError(f"Invalid state: {state}")
            if code not in states:
                states.append(code)
        zips = []
        for zipcode in _string_list(data, "zipcodes"):
            digits = re.sub(r'\D', '', zipcode)
            if not digits or len(digits) > 5:
                raise ServiceAreaError(f"Invalid ZIP code or prefix: {zipcode}")
            zips.append(digits)

        radius_error = f"Radius must be between 0 and {MAX_RADIUS_MILES} miles"
        try:
            radius = _optional_number(data.get("radiusMiles"))
            center_lat = _optional_number(data.get("centerLatitude"))
            center_lng = _optional_number(data.get("centerLongitude"))
        except (TypeError, ValueError) as e:
            raise ServiceAreaError("Radius and center coordinates must be numbers") from e
        if radius is None:
            radius = DEFAULT_RADIUS_MILES
        if radius <= 0 or radius > MAX_RADIUS_MILES:
            raise ServiceAreaError(radius_error)

        enabled = data.get("enabled")
        if enabled is None:
            enabled = False
        elif not isinstance(enabled, bool):
            raise ServiceAreaError("enabled must be true or false")

        if enabled and mode == "list" and not (cities or states or zips):
            raise ServiceAreaError("Please add at least one city or state for list mode")
        if enabled and mode == "radius" and (center_lat is None or center_lng is None):
            raise ServiceAreaError("Please set a center location for radius mode")
        if center_lat is not None and not -90 <= center_lat <= 90:
            raise ServiceAreaError("Center latitude must be between -90 and 90")
        if center_lng is not None and not -180 <= center_lng <= 180:
            raise ServiceAreaError("Center longitude must be between -180 and 180")

        message = data.get("outsideAreaMessage") or ""
        center_address = data.get("centerAddress") or None
        if not isinstance(message, str) or not isinstance(center_address, (str, type(None))):
            raise ServiceAreaError("Center address and outside area message must be text")
        message = message.strip() or DEFAULT_OUTSIDE_AREA_MESSAGE

        return {
            "enabled": enabled,
            "mode": mode,
            "cities": cities,
            "states": states,
            "zipcodes": zips,
            "centerAddress": center_address,
            "centerLatitude": center_lat,
            "centerLongitude": center_lng,
            "radiusMiles": radius,
            "outsideAreaMessage": message,
        }

    def update_config(
        self, data: Dict[str, Any], updated_by: User, change_note: Optional[str] = None
    ) -> Dict[str, Any]:
        """Replace the active config and record the change in history"""
        cleaned = self.normalize_config(data)

        for old in self.db.query(ServiceAreaConfig).filter(ServiceAreaConfig.is_active.is_(True)):
            old.is_active = False

        config = ServiceAreaConfig(
            enabled=cleaned["enabled"],
            mode=cleaned["mode"],
            cities=cleaned["cities"],
            states=cleaned["states"],
            zipcodes=cleaned["zipcodes"],
            center_address=cleaned["centerAddress"],
            center_latitude=cleaned["centerLatitude"],
            center_longitude=cleaned["centerLongitude"],
            radius_miles=cleaned["radiusMiles"],
            outside_area_message=cleaned["outsideAreaMessage"],
            is_active=True,
            updated_by=updated_by.id,
        )
        self.db.add(config)
        self.db.add(
            ServiceAreaConfigHistory(config=cleaned, updated_by=updated_by.id, change_note=change_note)
        )
        self.db.commit()
        logger.info(f"✅ Service area config updated by {updated_by.username}: mode={cleaned['mode']}")
        return cleaned

    def get_history(self, limit: int = 20) -> List[Dict[str, Any]]:
        entries = (
            self.db.query(ServiceAreaConfigHistory)
            .order_by(ServiceAreaConfigHistory.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "id": entry.id,
                "config": entry.config,
                "updatedBy": entry.updater.username if entry.updater else None,
                "changeNote": entry.change_note,
                "createdAt": entry.created_at,
            }
            for entry in entries
        ]

    # ========================================================================
    # CHECKS
    # ========================================================================

    def check_location(
        self,
        zipcode: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> Tuple[bool, Optional[str]]:
        """
        Check an address against the service area.

        Returns:
            Tuple of (is_serviceable, outside_area_message)
        """
        config = config or self.get_config_dict()
        if not config["enabled"]:
            return True, None

        if config["mode"] == "radius":
            served = self._check_radius(config, zipcode, latitude, longitude)
        else:
            served = self._check_list(config, zipcode, city, state)

        if served:
            return True, None
        return False, config["outsideAreaMessage"]

    def is_home_in_area(self, home: UserHome, config: Optional[Dict[str, Any]] = None) -> bool:
        served, _ = self.check_location(
            zipcode=home.zipcode,
            city=home.city,
            state=home.state,
            latitude=home.latitude,
            longitude=home.longitude,
            config=config,
        )
        return served

    def _check_list(
        self,
        config: Dict[str, Any],
        zipcode: Optional[str],
        city: Optional[str],
        state: Optional[str],
    ) -> bool:
        zip5 = normalize_zipcode(zipcode)
        if zip5 and any(zip5.startswith(prefix) for prefix in config["zipcodes"]):
            return True

        state_code = normalize_state(state)
        if not state_code and zip5:
            location = get_zipcode_location(zip5)
            state_code = location["state"] if location else None
        if state_code and state_code in config["states"]:
            return True

        if city:
            wanted = city.strip().lower()
            return any(c.lower() == wanted for c in config["cities"])
        return False

    def _check_radius(
        self,
        config: Dict[str, Any],
        zipcode: Optional[str],
        latitude: Optional[float],
        longitude: Optional[float],
    ) -> bool:
        if latitude is None or longitude is None:
            location = get_zipcode_location(zipcode) if zipcode else None
            if not location or location["latitude"] is None:
                logger.debug(f"No coordinates for ZIP {zipcode}; treating as outside radius")
                return False
            latitude, longitude = location["latitude"], location["longitude"]

        distance = haversine_miles(
            config["centerLatitude"], config["centerLongitude"], float(latitude), float(longitude)
        )
        return distance <= config["radiusMiles"]

    # ========================================================================
    # HOMES
    # ========================================================================

    def get_stats(self) -> Dict[str, int]:
        total = self.db.query(UserHome).count()
        outside = self.db.query(UserHome).filter(UserHome.outside_service_area.is_(True)).count()
        return {"totalHomes": total, "homesOutsideArea": outside, "homesInArea": total - outside}

    def recheck_all_homes(self) -> Dict[str, Any]:
        """
        Re-evaluate every home after a config change.

        Returns counts plus the homes whose status flipped so callers can
        notify their owners.
        """
        config = self.get_config_dict()
        homes = self.db.query(UserHome).all()
        now_in_area: List[UserHome] = []
        now_out_of_area: List[UserHome] = []

        for home in homes:
            outside = not self.is_home_in_area(home, config)
            if outside == bool(home.outside_service_area):
                continue
            home.outside_service_area = outside
            (now_out_of_area if outside else now_in_area).append(home)

        self.db.commit()
        logger.info(
            f"🔁 Service area recheck: {len(now_in_area)} now in area, "
            f"{len(now_out_of_area)} now outside, {len(homes)} homes"
        )
        return {
            "updated": len(now_in_area) + len(now_out_of_area),
            "nowInArea": now_in_area,
            "nowOutOfArea": now_out_of_area,
            "totalHomes": len(homes),
        }
