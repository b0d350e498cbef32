import math


def _as_number(vote):
    try:
        value = float(vote)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _percentage(count, total):
    # Half-up rounding to a whole percent
    return (count * 200 + total) // (2 * total)


def summarize_votes(session, deck=None):
    """Summarize the revealed votes of a session record.

    Returns None until the session is revealed or while nobody has voted.
    ``average`` and ``most_frequent`` only consider numeric cards (``?``
    and ``∞`` are counted in the distribution but not averaged); ties for
    ``most_frequent`` go to the value cast first.

    A revealed round where nobody played a numeric card (all ``?`` or
    ``∞``) still returns a summary, with ``average`` and ``most_frequent``
    set to None, so the distribution can be shown. Only "not revealed" and
    "no votes" give None.
    """
    if not session or not session.get('is_revealed'):
        return None
    votes = [p.get('vote') for p in (session.get('participants') or {}).values() if p.get('vote')]
    if not votes:
        return None

    counts = {}
    for vote in votes:
        counts[vote] = counts.get(vote, 0) + 1
    deck = list(deck or [])
    first_seen = list(counts)

    def order(value):
        position = deck.index(value) if value in deck else len(deck) + first_seen.index(value)
        return (-counts[value], position)

    total = len(votes)
    distribution = [
        {'value': value, 'count': counts[value], 'percentage': _percentage(counts[value], total)}
        for value in sorted(counts, key=order)
    ]

    average = None
    most_frequent = None
    numeric = [(vote, _as_number(vote)) for vote in votes]
    numeric = [(vote, number) for vote, number in numeric if number is not None]
    if numeric:
        average = f"{sum(number for _, number in numeric) / len(numeric):.1f}"
        numeric_counts = {}
        for vote, _ in numeric:
            numeric_counts[vote] = numeric_counts.get(vote, 0) + 1
        best = 0
        for vote, count in numeric_counts.items():
            if count > best:
                most_frequent, best = vote, count

    return {
        'average': average,
        'most_frequent': most_frequent,
        'total_votes': total,
        'distribution': distribution,
    }
