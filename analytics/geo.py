# wastewatch_root/analytics/geo.py
#
# Great-circle distance between sampling sites and the user.

import numpy as np

EARTH_RADIUS_KM = 6371.0


def haversine_distance_km(lat1, lon1, lat2, lon2):
    """
    Haversine distance in kilometers between two decimal-degree coordinates.

    Works element-wise on numpy arrays or pandas Series as well as scalars.
    Coordinate ranges are not validated.
    """
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    d_phi = np.radians(np.subtract(lat2, lat1))
    d_lambda = np.radians(np.subtract(lon2, lon1))

    a = np.sin(d_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    distance = EARTH_RADIUS_KM * c
    if np.ndim(distance) == 0:
        return float(distance)
    return distance
