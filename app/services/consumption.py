# app/services/consumption.py
"""
Consumption engine.

Turns cumulative meter readings into period consumption, converts gas
volumes into an energy equivalent and aggregates everything into
dashboard statistics. Every function here is pure: callers hand in meters
(ORM rows or any object exposing the same attributes) and get plain
dataclasses back.
"""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.core.exceptions import InvalidReadingError, ValidationError
from app.models.meter import MeterKind, MeterStatus

# 1 m³ natural gas ≈ 10.55 kWh ≈ 0.01055 MWh
GAS_TO_MWH_CONVERSION = 0.01055

UNASSIGNED = "unassigned"


def gas_volume_to_energy(volume_m3: float) -> float:
	"""Convert a gas volume (m³) into its energy equivalent (MWh). Sign is kept."""
	return volume_m3 * GAS_TO_MWH_CONVERSION


@dataclass(frozen=True)
class ConsumptionResult:
	consumption: float
	consumption_equivalent: float
	conversion_note: Optional[str]
	# Unrounded values, used for summation
	raw_consumption: float
	raw_equivalent: float


@dataclass(frozen=True)
class MeterFilter:
	status: Optional[str] = None
	kind: Optional[str] = None
	facility_id: Optional[Any] = None

	def matches(self, meter) -> bool:
		if self.status is not None and meter.status != self.status:
			return False
		if self.kind is not None and meter.kind != self.kind:
			return False
		if self.facility_id is not None and str(meter.facility_id) != str(self.facility_id):
			return False
		return True


@dataclass(frozen=True)
class GroupTotal:
	key: str
	consumption: float
	meters: int
	label: Optional[str] = None


@dataclass(frozen=True)
class OverviewStats:
	total_meters: int = 0
	count_active: int = 0
	heat_meters: int = 0
	gas_meters: int = 0
	electric_meters: int = 0
	total_consumption_equivalent: float = 0.0
	average_consumption: float = 0.0
	conversion_factor: float = GAS_TO_MWH_CONVERSION
	by_facility: List[GroupTotal] = field(default_factory=list)
	by_kind: List[GroupTotal] = field(default_factory=list)


@dataclass(frozen=True)
class MeterConsumption:
	meter_id: Any
	name: str
	kind: str
	unit: str
	facility_id: Optional[Any]
	consumption: float
	consumption_equivalent: float


@dataclass(frozen=True)
class TrendPoint:
	date: date
	consumption: float


@dataclass(frozen=True)
class ConsumptionStats:
	start_date: date
	end_date: date
	per_meter: List[MeterConsumption]
	daily_trend: List[TrendPoint]


def _format_quantity(value: float) -> str:
	"""Shortest display form of a 2-decimal quantity: 220.0 -> '220', 50.50 -> '50.5'."""
	text = f"{value:.2f}".rstrip("0").rstrip(".")
	return "0" if text in ("-0", "") else text


def cumulative_value(meter, attribute: str) -> float:
	value = getattr(meter, attribute, None)
	if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
		raise InvalidReadingError(
			f"Meter {getattr(meter, 'number', None) or getattr(meter, 'id', '?')} has a malformed {attribute}: {value!r}",
			meter_id=getattr(meter, "id", None),
		)
	return float(value)


def compute_consumption(meter) -> ConsumptionResult:
	"""
	Consumption of a single meter between its previous and current reading.

	Negative deltas (meter replaced or reset) are returned as-is so they
	stay visible to operators.
	"""
	current = cumulative_value(meter, "current_reading")
	previous = cumulative_value(meter, "previous_reading")
	raw = current - previous
	consumption = round(raw, 2)

	if meter.kind == MeterKind.GAS:
		raw_equivalent = gas_volume_to_energy(raw)
		equivalent = round(raw_equivalent, 3)
		note = f"{_format_quantity(consumption)} m³ = {raw_equivalent:.3f} MWh"
	else:
		raw_equivalent = raw
		equivalent = consumption
		note = None

	return ConsumptionResult(
		consumption=consumption,
		consumption_equivalent=equivalent,
		conversion_note=note,
		raw_consumption=raw,
		raw_equivalent=raw_equivalent,
	)


def _is_active(meter) -> bool:
	return meter.status == MeterStatus.ACTIVE


def kind_value(kind) -> str:
	# str-mixin enums hash by member name, so dict keys use the plain value
	return kind.value if isinstance(kind, MeterKind) else str(kind)


def _sorted_groups(sums: Mapping[str, float], counts: Mapping[str, int],
				   labels: Optional[Mapping[str, str]] = None) -> List[GroupTotal]:
	groups = [
		GroupTotal(
			key=key,
			consumption=round(total, 3),
			meters=counts[key],
			label=(labels or {}).get(key),
		)
		for key, total in sums.items()
	]
	# Ties broken by key so repeated runs give the same order
	groups.sort(key=lambda g: (-g.consumption, g.key))
	return groups


def summarize(
		meters: Iterable,
		meter_filter: Optional[MeterFilter] = None,
		facility_names: Optional[Mapping[str, str]] = None,
) -> OverviewStats:
	"""
	Overview statistics for a meter population.

	Only meters with status Active contribute consumption; the filter is
	applied first, so filtering on a non-Active status yields counts with
	zero consumption. Totals are in MWh (gas converted), group sums are in
	each meter's native unit.
	"""
	meter_filter = meter_filter or MeterFilter()
	selected = [m for m in meters if meter_filter.matches(m)]

	kinds = defaultdict(int)
	for meter in selected:
		kinds[kind_value(meter.kind)] += 1

	total_equivalent = 0.0
	count_active = 0
	facility_sums: Dict[str, float] = defaultdict(float)
	facility_counts: Dict[str, int] = defaultdict(int)
	kind_sums: Dict[str, float] = defaultdict(float)
	kind_counts: Dict[str, int] = defaultdict(int)

	for meter in selected:
		if not _is_active(meter):
			continue
		result = compute_consumption(meter)
		count_active += 1
		total_equivalent += result.raw_equivalent

		facility_key = str(meter.facility_id) if meter.facility_id is not None else UNASSIGNED
		facility_sums[facility_key] += result.raw_consumption
		facility_counts[facility_key] += 1

		kind_key = kind_value(meter.kind)
		kind_sums[kind_key] += result.raw_consumption
		kind_counts[kind_key] += 1

	average = total_equivalent / count_active if count_active else 0.0

	return OverviewStats(
		total_meters=len(selected),
		count_active=count_active,
		heat_meters=kinds[MeterKind.HEAT.value],
		gas_meters=kinds[MeterKind.GAS.value],
		electric_meters=kinds[MeterKind.ELECTRIC.value],
		total_consumption_equivalent=round(total_equivalent, 3),
		average_consumption=round(average, 4),
		by_facility=_sorted_groups(facility_sums, facility_counts, facility_names),
		by_kind=_sorted_groups(kind_sums, kind_counts),
	)


def per_meter_consumption(meters: Iterable) -> List[MeterConsumption]:
	"""Consumption of every Active meter, in the given order."""
	rows = []
	for meter in meters:
		if not _is_active(meter):
			continue
		result = compute_consumption(meter)
		rows.append(MeterConsumption(
			meter_id=meter.id,
			name=meter.name,
			kind=kind_value(meter.kind),
			unit=meter.unit,
			facility_id=meter.facility_id,
			consumption=result.consumption,
			consumption_equivalent=result.consumption_equivalent,
		))
	return rows


def resolve_period(start_date: Optional[date], end_date: Optional[date],
				   default_days: int = 30, today: Optional[date] = None) -> tuple[date, date]:
	"""Fill in a missing trend window; the default window ends today."""
	today = today or date.today()
	end = end_date or today
	start = start_date or end - timedelta(days=default_days)
	if start > end:
		raise ValidationError(
			f"start_date {start.isoformat()} is after end_date {end.isoformat()}",
			start_date=start.isoformat(),
			end_date=end.isoformat(),
		)
	return start, end


def daily_trend(readings: Iterable, meter_kinds: Mapping[Any, str],
				start_date: date, end_date: date) -> List[TrendPoint]:
	"""
	Energy-equivalent consumption per calendar day, built from reading events.

	Each reading contributes its recorded consumption on its reading date;
	gas readings are converted to MWh. Days without readings are 0.0.
	"""
	per_day: Dict[date, float] = defaultdict(float)
	for reading in readings:
		day = reading.reading_date
		if day < start_date or day > end_date:
			continue
		consumption = reading.consumption or 0.0
		if meter_kinds.get(reading.meter_id) == MeterKind.GAS:
			consumption = gas_volume_to_energy(consumption)
		per_day[day] += consumption

	points = []
	day = start_date
	while day <= end_date:
		points.append(TrendPoint(date=day, consumption=round(per_day.get(day, 0.0), 3)))
		day += timedelta(days=1)
	return points


def consumption_stats(meters: Iterable, readings: Iterable, start_date: date,
					  end_date: date) -> ConsumptionStats:
	meters = list(meters)
	kinds = {m.id: m.kind for m in meters}
	return ConsumptionStats(
		start_date=start_date,
		end_date=end_date,
		per_meter=per_meter_consumption(meters),
		daily_trend=daily_trend(readings, kinds, start_date, end_date),
	)
