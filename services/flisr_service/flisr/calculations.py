"""\
Определение места повреждения двусторонним волновым методом.

Волна от точки КЗ приходит на концы линии A и B в моменты t_a и t_b.
Зная скорость распространения v = 1 / sqrt(L·C) (погонные параметры на метр),
расстояние от начала линии:

    d = (L_line + v · (t_a - t_b)) / 2

Все функции чистые: одинаковый вход всегда даёт одинаковый результат.
"""

import math
import re
from typing import Any

from flisr.errors import InvalidParameterError, PrecisionError
from flisr.types import FaultDistanceResult

NANOS_IN_SECOND = 1_000_000_000

# Граница точного представления целых в мантиссе float64
MAX_SAFE_INTEGER = 2 ** 53 - 1

MIN_CLAMPED_CONFIDENCE = 0.4
# Прижатая оценка никогда не считается полностью достоверной
MAX_CLAMPED_CONFIDENCE = 0.99

_INTEGER_RE = re.compile(r"^-?\d+$")


def _require_positive(value: float, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"{name} must be a number, got {value!r}.") from exc
    if not math.isfinite(number) or number <= 0:
        raise InvalidParameterError(f"{name} must be a positive finite number, got {value!r}.")
    return number


def to_nanoseconds(value: Any) -> int:
    """Приводит метку времени (int, float или строку с целым) к int наносекунд."""
    # bool является подклассом int, но меткой времени не считается
    if isinstance(value, bool):
        raise InvalidParameterError("Timestamp must be an integer, not a boolean.")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidParameterError("Timestamp must be a finite number.")
        return math.trunc(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not _INTEGER_RE.match(stripped):
            raise InvalidParameterError(f'Timestamp string "{value}" is not a valid integer.')
        return int(stripped)
    raise InvalidParameterError(f"Timestamp of type {type(value).__name__} is not supported.")


def calculate_time_delta_seconds(timestamp_a: Any, timestamp_b: Any) -> float:
    """Разность t_a - t_b в секундах; вычитание в целых без потери точности."""
    delta = to_nanoseconds(timestamp_a) - to_nanoseconds(timestamp_b)
    if abs(delta) > MAX_SAFE_INTEGER:
        raise PrecisionError(
            f"Timestamp delta {delta} ns exceeds IEEE-754 double precision limits."
        )
    return delta / NANOS_IN_SECOND


def calculate_propagation_speed(inductance_h_per_km: float, capacitance_f_per_km: float) -> float:
    """Скорость распространения волны, м/с."""
    inductance = _require_positive(inductance_h_per_km, "Inductance per km")
    capacitance = _require_positive(capacitance_f_per_km, "Capacitance per km")

    # Погонные параметры: с километра на метр
    product = (inductance / 1000) * (capacitance / 1000)
    if product <= 0:
        raise InvalidParameterError("Invalid LC product computed for propagation velocity.")

    speed = 1 / math.sqrt(product)
    if not math.isfinite(speed) or speed <= 0:
        raise InvalidParameterError("Propagation speed calculation produced an invalid value.")
    return speed


def calculate_fault_distance(
    length_km: float,
    propagation_speed: float,
    time_delta_s: float,
) -> FaultDistanceResult:
    """
    Расстояние до места повреждения от начала линии.

    Если расчётная точка вышла за пределы линии, она прижимается к ближайшему
    концу, а достоверность снижается пропорционально величине выхода
    (но не ниже 0.4 и не выше 0.99).
    """
    length_km = _require_positive(length_km, "Line length in km")
    propagation_speed = _require_positive(propagation_speed, "Propagation speed")
    if not math.isfinite(time_delta_s):
        raise InvalidParameterError("Time delta must be a finite number.")

    length_m = length_km * 1000
    raw_distance = 0.5 * (length_m + propagation_speed * time_delta_s)

    distance = min(max(raw_distance, 0.0), length_m)
    clamped = distance != raw_distance

    confidence = 1.0
    if clamped:
        confidence = min(
            MAX_CLAMPED_CONFIDENCE,
            round(max(MIN_CLAMPED_CONFIDENCE, 1 - abs(raw_distance - distance) / length_m), 2),
        )

    return FaultDistanceResult(
        distance_from_source_m=distance,
        distance_from_end_m=length_m - distance,
        line_length_m=length_m,
        propagation_speed_m_s=propagation_speed,
        time_delta_s=time_delta_s,
        clamped=clamped,
        confidence=confidence,
    )


def estimate(
    length_km: float,
    inductance_h_per_km: float,
    capacitance_f_per_km: float,
    timestamp_a: Any,
    timestamp_b: Any,
) -> FaultDistanceResult:
    """Полный расчёт: Δt, скорость волны и расстояние до повреждения."""
    time_delta_s = calculate_time_delta_seconds(timestamp_a, timestamp_b)
    speed = calculate_propagation_speed(inductance_h_per_km, capacitance_f_per_km)
    return calculate_fault_distance(length_km, speed, time_delta_s)
