from datetime import datetime, timezone

import numpy as np

from solar_weather_mcp.models import Coordinates, IrradianceEstimate, ProductionEstimate

SOLAR_CONSTANT = 1367.0  # W/m2
CLEAR_SKY_TRANSMITTANCE = 0.7
STC_IRRADIANCE = 1000.0  # W/m2, panel rating conditions
STC_TEMPERATURE_C = 25.0
SOILING_LOSS = 0.02
SOILING_CLOUD_COVER_PCT = 50.0


def estimate_irradiance(coords: Coordinates, cloud_cover_pct: float, timestamp: int) -> IrradianceEstimate:
    """Estimate GHI/DNI/DHI from sun position and cloud cover.

    Simplified clear-sky model: solar altitude from declination and hour
    angle (local solar time derived from longitude), cubic cloud attenuation,
    and a Reindl-style diffuse fraction from the clearness index.
    """
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    day_of_year = moment.timetuple().tm_yday
    solar_hour = (moment.hour + moment.minute / 60 + coords.longitude / 15) % 24

    declination = np.radians(23.45 * np.sin(np.radians(360 / 365 * (day_of_year - 81))))
    hour_angle = np.radians((solar_hour - 12) * 15)
    latitude = np.radians(coords.latitude)

    sin_altitude = np.sin(latitude) * np.sin(declination) + np.cos(latitude) * np.cos(declination) * np.cos(
        hour_angle
    )
    if sin_altitude <= 0:
        return IrradianceEstimate(ghi=0.0, dni=0.0, dhi=0.0)

    clear_sky_ghi = SOLAR_CONSTANT * sin_altitude * CLEAR_SKY_TRANSMITTANCE
    cloud_factor = 1 - 0.75 * (np.clip(cloud_cover_pct, 0, 100) / 100) ** 3
    ghi = clear_sky_ghi * cloud_factor

    clearness = ghi / (SOLAR_CONSTANT * sin_altitude)
    if clearness <= 0.3:
        diffuse_fraction = 1.0
    elif clearness <= 0.7:
        diffuse_fraction = 1.1 - 1.13 * clearness
    else:
        diffuse_fraction = 0.3

    dhi = ghi * diffuse_fraction
    dni = (ghi - dhi) / sin_altitude

    return IrradianceEstimate(ghi=float(np.round(ghi)), dni=float(np.round(dni)), dhi=float(np.round(dhi)))


def estimate_production(
    irradiance: IrradianceEstimate,
    temperature_c: float,
    cloud_cover_pct: float,
    capacity_kw: float = 100000.0,
    base_efficiency: float = 0.18,
    temperature_loss_per_c: float = 0.004,
) -> ProductionEstimate:
    """Expected plant output scaled from rated capacity.

    Efficiency loses temperature_loss_per_c for every degree above 25 C and
    a fixed soiling allowance under overcast skies. Output is capacity times
    GHI relative to 1000 W/m2, derated by efficiency relative to the rating.
    """
    temperature_loss = max(0.0, (temperature_c - STC_TEMPERATURE_C) * temperature_loss_per_c)
    soiling_loss = SOILING_LOSS if cloud_cover_pct > SOILING_CLOUD_COVER_PCT else 0.0
    efficiency = max(0.0, base_efficiency * (1 - temperature_loss - soiling_loss))

    derating = efficiency / base_efficiency if base_efficiency > 0 else 0.0
    power_kw = irradiance.ghi / STC_IRRADIANCE * capacity_kw * derating

    return ProductionEstimate(
        expected_power_kw=round(power_kw, 1),
        efficiency_pct=round(efficiency * 100, 2),
    )
