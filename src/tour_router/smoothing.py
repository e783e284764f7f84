from bisect import bisect_left

GAIN_LOSS_METHODS = ("simple", "hysteresis")


def moving_average(values: list[float], window: int) -> list[float]:
    """Centered moving average; the window shrinks at both ends.

    A window of 1 or less returns a copy of the input.
    """
    if window <= 1 or len(values) < 2:
        return list(values)

    half = window // 2
    smoothed = []
    for i in range(len(values)):
        start = max(0, i - half)
        end = min(len(values), i + half + 1)
        segment = values[start:end]
        smoothed.append(sum(segment) / len(segment))
    return smoothed


def simple_gain_loss(elevations: list[float], floor: float, cap: float) -> tuple[float, float]:
    """Sum step-by-step elevation changes with a noise floor and a per-step cap.

    Steps smaller than `floor` are ignored; larger steps contribute at most
    `cap` meters each.
    """
    gain = 0.0
    loss = 0.0
    for i in range(1, len(elevations)):
        delta = elevations[i] - elevations[i - 1]
        step = abs(delta)
        if step < floor:
            continue
        step = min(step, cap)
        if delta > 0:
            gain += step
        else:
            loss += step
    return gain, loss


def _local_variability(smoothed: list[float], i: int, window: int) -> float:
    """Mean absolute step of the smoothed series in the window around index i."""
    half = max(1, window // 2)
    start = max(1, i - half)
    end = min(len(smoothed), i + half + 1)
    steps = [abs(smoothed[j] - smoothed[j - 1]) for j in range(start, end)]
    if not steps:
        return 0.0
    return sum(steps) / len(steps)


def hysteresis_gain_loss(
    elevations: list[float], win: int, k: float, floor: float, cap: float
) -> tuple[float, float]:
    """Gain/loss with smoothing and a dynamic dead band.

    The series is smoothed with a moving average of `win` samples. A change is
    only registered once the smoothed elevation has moved away from the last
    reference by more than max(floor, k * local variability); the registered
    amount is clamped to `cap` and the reference moves to the current value.
    Oscillating noise stays inside the band, sustained climbs leave it.
    """
    if len(elevations) < 2:
        return 0.0, 0.0

    smoothed = moving_average(elevations, win)
    gain = 0.0
    loss = 0.0
    reference = smoothed[0]

    for i in range(1, len(smoothed)):
        threshold = max(floor, k * _local_variability(smoothed, i, win))
        deviation = smoothed[i] - reference
        if abs(deviation) <= threshold:
            continue
        amount = min(abs(deviation), cap)
        if deviation > 0:
            gain += amount
        else:
            loss += amount
        reference = smoothed[i]

    return gain, loss


def calculate_gain_loss(
    elevations: list[float],
    method: str = "hysteresis",
    win: int = 3,
    k: float = 0.8,
    floor: float = 0.5,
    cap: float = 3.0,
) -> tuple[float, float]:
    """Dispatch to the selected gain/loss method."""
    if method == "simple":
        return simple_gain_loss(elevations, floor, cap)
    elif method == "hysteresis":
        return hysteresis_gain_loss(elevations, win, k, floor, cap)
    else:
        raise ValueError(f"Unknown gain/loss method: {method}")


def interpolate_missing(distances: list[float], elevations: list[float | None]) -> list[float] | None:
    """Fill failed samples by linear interpolation over distance.

    Gaps before the first or after the last valid sample take the nearest
    valid value. Returns None when no sample is valid.
    """
    valid = [i for i, e in enumerate(elevations) if e is not None]
    if not valid:
        return None
    if len(valid) == len(elevations):
        return list(elevations)

    valid_dists = [distances[i] for i in valid]
    filled = []
    for i, elev in enumerate(elevations):
        if elev is not None:
            filled.append(elev)
            continue

        pos = bisect_left(valid, i)
        if pos == 0:
            filled.append(elevations[valid[0]])
        elif pos == len(valid):
            filled.append(elevations[valid[-1]])
        else:
            lo, hi = valid[pos - 1], valid[pos]
            d_lo, d_hi = valid_dists[pos - 1], valid_dists[pos]
            e_lo, e_hi = elevations[lo], elevations[hi]
            if d_hi == d_lo:
                filled.append((e_lo + e_hi) / 2)
            else:
                t = (distances[i] - d_lo) / (d_hi - d_lo)
                filled.append(e_lo + (e_hi - e_lo) * t)
    return filled


def remove_spikes(
    distances_km: list[float],
    elevations: list[float],
    short_meters: float = 1.0,
    short_jump: float = 50.0,
    slope: float = 1.0,
    slope_min_jump: float = 0.0,
) -> list[float]:
    """Flatten DEM spikes by repeating the last plausible elevation.

    A sample is a spike when, measured against the last kept value, it jumps
    more than `short_jump` meters over less than `short_meters`, or climbs
    steeper than `slope` (rise over run) on a jump of at least
    `slope_min_jump` meters. A real step is not lost: once the terrain stays
    at the new level, the change is accepted over the longer distance.
    """
    if not elevations:
        return []

    cleaned = [elevations[0]]
    run_m = 0.0
    for i in range(1, len(elevations)):
        run_m += (distances_km[i] - distances_km[i - 1]) * 1000
        jump = abs(elevations[i] - cleaned[-1])
        too_sudden = run_m < short_meters and jump > short_jump
        too_steep = jump >= slope_min_jump and jump > slope * run_m
        if too_sudden or too_steep:
            cleaned.append(cleaned[-1])
        else:
            cleaned.append(elevations[i])
            run_m = 0.0
    return cleaned
