# tests/test_cards.py
import random

import pytest

from spades_table.cards import (
    Card,
    Rank,
    Suit,
    card_to_dict,
    card_to_string,
    compare_cards,
    create_deck,
    deal_cards,
    dict_to_card,
    get_cards_of_suit,
    has_only_spades,
    parse_card,
    remove_card_from_hand,
    shuffle_deck,
    sort_hand,
)


def c(text: str) -> Card:
    return parse_card(text)


def test_create_deck_has_52_unique_cards():
    deck = create_deck()
    assert len(deck) == 52
    assert len(set(deck)) == 52
    for suit in Suit:
        assert len(get_cards_of_suit(deck, suit)) == 13


def test_shuffle_deck_leaves_input_untouched():
    deck = create_deck()
    snapshot = list(deck)
    shuffled = shuffle_deck(deck, random.Random(7))

    assert deck == snapshot
    assert sorted(shuffled, key=card_to_string) == sorted(deck, key=card_to_string)
    assert shuffled != deck


def test_deal_cards_partitions_the_deck():
    deck = create_deck()
    hands = deal_cards(deck, 4, random.Random(3))

    assert len(hands) == 4
    assert all(len(h) == 13 for h in hands)
    dealt = [card for hand in hands for card in hand]
    assert len(set(dealt)) == 52
    assert set(dealt) == set(deck)


def test_deal_cards_is_reproducible_with_same_seed():
    first = deal_cards(create_deck(), 4, random.Random(11))
    second = deal_cards(create_deck(), 4, random.Random(11))
    assert first == second


def test_deal_cards_rejects_uneven_split():
    with pytest.raises(ValueError):
        deal_cards(create_deck(), 5)


def test_sort_hand_groups_suits_and_ranks_descending():
    hand = [c("2H"), c("AS"), c("KD"), c("10C"), c("QS"), c("JH"), c("3C")]
    assert [card_to_string(x) for x in sort_hand(hand)] == [
        "AS", "QS", "JH", "2H", "10C", "3C", "KD",
    ]


def test_sort_hand_on_dealt_hands():
    order = {Suit.SPADES: 0, Suit.HEARTS: 1, Suit.CLUBS: 2, Suit.DIAMONDS: 3}
    for hand in deal_cards(create_deck(), 4, random.Random(5)):
        keys = [(order[x.suit], -x.rank.order) for x in hand]
        assert keys == sorted(keys)
        # strictly descending ranks inside each suit group
        assert len(set(keys)) == len(keys)


def test_compare_cards():
    # spade trumps the led suit
    assert compare_cards(c("2S"), c("AH"), Suit.HEARTS) > 0
    # higher card of the led suit wins
    assert compare_cards(c("KH"), c("QH"), Suit.HEARTS) > 0
    # off-suit non-spade loses to the led suit
    assert compare_cards(c("AD"), c("2H"), Suit.HEARTS) < 0
    assert compare_cards(c("5C"), c("5C"), Suit.CLUBS) == 0


def test_card_text_codec():
    assert card_to_string(Card(Suit.HEARTS, Rank.TEN)) == "10H"
    assert parse_card("10h") == Card(Suit.HEARTS, Rank.TEN)
    assert parse_card(" as ") == Card(Suit.SPADES, Rank.ACE)
    assert str(Card(Suit.CLUBS, Rank.QUEEN)) == "QC"


@pytest.mark.parametrize("text", ["", "1H", "11S", "AX", "KING"])
def test_parse_card_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_card(text)


def test_card_dict_codec_and_validation():
    card = Card(Suit.DIAMONDS, Rank.KING)
    assert card_to_dict(card) == {"suit": "diamonds", "rank": "K"}
    assert dict_to_card({"suit": "diamonds", "rank": "K"}) == card

    with pytest.raises(ValueError):
        dict_to_card({"suit": "stars", "rank": "K"})
    with pytest.raises(ValueError):
        dict_to_card({"suit": "spades"})
    with pytest.raises(ValueError):
        Card("spades", Rank.ACE)


def test_remove_card_from_hand():
    hand = (c("AS"), c("KH"), c("2D"))
    assert remove_card_from_hand(hand, c("KH")) == (c("AS"), c("2D"))
    # absent card returns the very same object
    assert remove_card_from_hand(hand, c("3C")) is hand


def test_has_only_spades():
    assert has_only_spades([c("AS"), c("2S")])
    assert not has_only_spades([c("AS"), c("2H")])
