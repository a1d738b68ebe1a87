"""
Tests for ranker payloads, reply parsing and the ranked merge.
"""

import pytest

from assistant.errors import MalformedRankerResponse
from assistant.models import Classification, RankedPick
from assistant.ranking import (
    build_ranker_payload,
    parse_ranker_response,
    resolve_ranking,
    select_top_per_source,
)
from scrapers.models import ScrapedProduct


def product(source, external_id, name='Leather jacket', size=None, condition=None):
    return ScrapedProduct(
        source=source,
        external_id=external_id,
        name=name,
        brand='Acne Studios',
        price='450 €',
        image_url=f'https://img/{external_id}.jpg',
        detail_url=f'https://shop/{external_id}',
        size=size,
        condition=condition,
        id_derived=True,
    )


@pytest.fixture
def candidates():
    return {
        'vestiaire': [product('vestiaire', 'v0', size='M', condition='used'), product('vestiaire', 'v1')],
        'vinted': [product('vinted', 'n0')],
        'farfetch': [],
        'ssense': [product('ssense', 's0'), product('ssense', 's1'), product('ssense', 's2')],
    }


class TestPayload:
    """Test the ranker request body."""

    def test_positional_ids_and_optional_fields(self, candidates):
        payload = build_ranker_payload(Classification(category='jacket'), candidates)

        assert payload['classification']['category'] == 'jacket'
        vestiaire = payload['products']['vestiaire']
        assert vestiaire[0] == {
            'id': 0, 'name': 'Leather jacket', 'brand': 'Acne Studios', 'price': '450 €',
            'size': 'M', 'condition': 'used',
        }
        assert 'size' not in vestiaire[1]
        assert [c['id'] for c in payload['products']['ssense']] == [0, 1, 2]
        assert payload['products']['farfetch'] == []


class TestParseRankerResponse:
    """Test tolerant decoding of ranker replies."""

    def test_keyed_object(self):
        picks = parse_ranker_response('{"products": [{"source": "vestiaire", "id": 0}, {"source": "vinted", "id": 99}]}')
        assert picks == [RankedPick(source='vestiaire', id=0), RankedPick(source='vinted', id=99)]

    def test_bare_array(self):
        picks = parse_ranker_response('[{"source": "ssense", "id": 2}]')
        assert picks == [RankedPick(source='ssense', id=2)]

    def test_code_fence(self):
        picks = parse_ranker_response('```json\n{"products": [{"source": "ssense", "id": 1}]}\n```')
        assert picks == [RankedPick(source='ssense', id=1)]

    def test_embedded_in_text(self):
        text = 'Here is the ranking you asked for: {"products": [{"source": "vinted", "id": 0}]} Hope this helps!'
        assert parse_ranker_response(text) == [RankedPick(source='vinted', id=0)]

    def test_first_valid_embedded_value_wins(self):
        text = 'Classification {"category": "jacket"} then [{"source": "ssense", "id": 0}] and [{"source": "vinted", "id": 0}]'
        assert parse_ranker_response(text) == [RankedPick(source='ssense', id=0)]

    def test_alternate_index_key(self):
        picks = parse_ranker_response('[{"source": "ssense", "positionalIndex": 1}]')
        assert picks[0].id == 1

    def test_invalid_picks_are_dropped(self):
        text = (
            '{"products": [{"source": "vestiaire", "id": 0}, {"source": "vinted", "id": null},'
            ' {"source": "vinted"}, {"source": "vinted", "id": 1}]}'
        )
        picks = parse_ranker_response(text)
        assert picks == [RankedPick(source='vestiaire', id=0), RankedPick(source='vinted', id=1)]

    def test_invalid_picks_dropped_before_merge(self, candidates):
        picks = parse_ranker_response('[{"source": "ssense", "id": "first"}, {"source": "ssense", "id": 2}]')
        ranked = resolve_ranking(picks, candidates)
        assert [(p.source, p.id, p.rank) for p in ranked] == [('ssense', 's2', 1)]

    @pytest.mark.parametrize('text', [
        '',
        'I could not rank these products.',
        '{"ranking": [1, 2, 3]}',
        '{"products": "none"}',
        '[1, 2, 3]',
    ])
    def test_malformed(self, text):
        with pytest.raises(MalformedRankerResponse) as excinfo:
            parse_ranker_response(text)
        assert excinfo.value.stage == 'rank'


class TestResolveRanking:
    """Test mapping picks back onto the candidate set."""

    def test_out_of_range_pick_is_dropped(self, candidates):
        picks = [RankedPick(source='vestiaire', id=0), RankedPick(source='vinted', id=99)]

        ranked = resolve_ranking(picks, candidates)

        assert len(ranked) == 1
        assert ranked[0].rank == 1
        assert ranked[0].id == 'v0'
        assert ranked[0].retailer == 'Vestiaire Collective'
        assert ranked[0].size == 'M'
        assert ranked[0].product_url == 'https://shop/v0'

    def test_order_is_preserved(self, candidates):
        picks = [
            RankedPick(source='ssense', id=2),
            RankedPick(source='vestiaire', id=1),
            RankedPick(source='ssense', id=0),
        ]
        ranked = resolve_ranking(picks, candidates)
        assert [(p.source, p.id) for p in ranked] == [('ssense', 's2'), ('vestiaire', 'v1'), ('ssense', 's0')]
        assert [p.rank for p in ranked] == [1, 2, 3]

    def test_unknown_source_negative_and_duplicate_picks(self, candidates):
        picks = [
            RankedPick(source='zalando', id=0),
            RankedPick(source='ssense', id=-1),
            RankedPick(source='ssense', id=1),
            RankedPick(source='ssense', id=1),
            RankedPick(source='farfetch', id=0),
        ]
        ranked = resolve_ranking(picks, candidates)
        assert [(p.source, p.index) for p in ranked] == [('ssense', 1)]

    def test_at_most_twenty(self):
        many = {'ssense': [product('ssense', f's{i}') for i in range(30)]}
        picks = [RankedPick(source='ssense', id=i) for i in range(30)]
        ranked = resolve_ranking(picks, many)
        assert len(ranked) == 20
        assert ranked[-1].id == 's19'


class TestSimpleSelection:
    """Test the per-source selection used without ranking."""

    def test_top_per_source(self, candidates):
        picks = select_top_per_source(candidates, per_source=2)
        assert [(p.source, p.id) for p in picks] == [
            ('vestiaire', 0), ('vestiaire', 1), ('vinted', 0), ('ssense', 0), ('ssense', 1),
        ]
