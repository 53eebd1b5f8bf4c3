from __future__ import annotations

import pytest

from service_manager.membership.bitmap import (
    MAX_QUORUM_COUNT,
    QuorumBitmap,
    bitmap_to_quorum_indices,
    quorum_indices_to_bitmap,
)


def test_empty_bitmap_decodes_to_no_quorums() -> None:
    assert bitmap_to_quorum_indices(0) == []
    assert QuorumBitmap().is_empty()


def test_full_bitmap_decodes_to_every_quorum_in_order() -> None:
    assert bitmap_to_quorum_indices(QuorumBitmap.full()) == list(range(MAX_QUORUM_COUNT))


def test_decode_returns_set_bits_ascending() -> None:
    assert bitmap_to_quorum_indices(0b1011) == [0, 1, 3]
    assert bitmap_to_quorum_indices(1 << 191) == [191]
    assert bitmap_to_quorum_indices((1 << 100) | (1 << 5)) == [5, 100]


def test_decode_matches_bit_positions_for_every_byte_value() -> None:
    for value in range(256):
        expected = [i for i in range(8) if value & (1 << i)]
        assert bitmap_to_quorum_indices(value) == expected


def test_encode_is_inverse_of_decode() -> None:
    for indices in ([], [0], [2, 7, 9], [0, 64, 128, 191]):
        bitmap = quorum_indices_to_bitmap(indices)
        assert bitmap.indices() == indices


def test_encode_ignores_duplicate_indices() -> None:
    assert quorum_indices_to_bitmap([3, 3, 1]).value == 0b1010


@pytest.mark.parametrize("index", [-1, MAX_QUORUM_COUNT, 1000])
def test_encode_rejects_out_of_range_index(index: int) -> None:
    with pytest.raises(ValueError):
        quorum_indices_to_bitmap([index])


@pytest.mark.parametrize("value", [-1, 1 << MAX_QUORUM_COUNT])
def test_bitmap_rejects_values_outside_width(value: int) -> None:
    with pytest.raises(ValueError):
        QuorumBitmap(value)
    with pytest.raises(ValueError):
        bitmap_to_quorum_indices(value)


def test_bitmap_rejects_non_integers() -> None:
    with pytest.raises(ValueError):
        QuorumBitmap(True)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        QuorumBitmap("3")  # type: ignore[arg-type]


def test_contains_and_count() -> None:
    bitmap = QuorumBitmap.from_indices([0, 4])
    assert bitmap.contains(0)
    assert bitmap.contains(4)
    assert not bitmap.contains(1)
    assert bitmap.count() == 2
    with pytest.raises(ValueError):
        bitmap.contains(MAX_QUORUM_COUNT)
