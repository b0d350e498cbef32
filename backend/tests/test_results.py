from poker.services.sessions.results import summarize_votes

DECK = ['0', '1', '2', '3', '5', '8', '13', '21', '?', '∞']


def _session(*votes, revealed=True):
    participants = {
        f'p{i}': {'id': f'p{i}', 'name': f'P{i}', 'vote': vote}
        for i, vote in enumerate(votes)
    }
    return {'id': 'ABCD1234', 'participants': participants, 'is_revealed': revealed}


def test_hidden_until_revealed():
    assert summarize_votes(_session('5', '8', revealed=False), DECK) is None
    assert summarize_votes(None, DECK) is None


def test_no_votes():
    assert summarize_votes(_session(None, None), DECK) is None


def test_average_and_most_frequent():
    summary = summarize_votes(_session('5', '8', '8', None), DECK)
    assert summary['average'] == '7.0'
    assert summary['most_frequent'] == '8'
    assert summary['total_votes'] == 3
    assert summary['distribution'] == [
        {'value': '8', 'count': 2, 'percentage': 67},
        {'value': '5', 'count': 1, 'percentage': 33},
    ]


def test_non_numeric_cards_are_counted_but_not_averaged():
    summary = summarize_votes(_session('3', '?', '∞', '?'), DECK)
    assert summary['average'] == '3.0'
    assert summary['most_frequent'] == '3'
    assert summary['total_votes'] == 4
    assert [d['value'] for d in summary['distribution']] == ['?', '3', '∞']
    assert summary['distribution'][0]['percentage'] == 50


def test_only_non_numeric_votes():
    summary = summarize_votes(_session('?', '?'), DECK)
    assert summary['average'] is None
    assert summary['most_frequent'] is None
    assert summary['distribution'] == [{'value': '?', 'count': 2, 'percentage': 100}]


def test_tie_goes_to_first_cast_value():
    summary = summarize_votes(_session('13', '2', '2', '13'), DECK)
    assert summary['most_frequent'] == '13'
    # Equal counts fall back to deck order
    assert [d['value'] for d in summary['distribution']] == ['2', '13']
    assert summary['average'] == '7.5'


def test_values_outside_the_deck():
    summary = summarize_votes(_session('40', '100', '40'))
    assert summary['average'] == '60.0'
    assert summary['most_frequent'] == '40'
    assert [d['value'] for d in summary['distribution']] == ['40', '100']
