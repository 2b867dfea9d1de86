"""
Packed tally values and the commitment log
"""

import pytest

from amaci.commitments import STATE, TALLY, CommitmentLog, NullifierSet
from amaci.errors import CommitmentMismatchError
from amaci.tally import MAX_VOTES, accumulate, pack_tally_value, unpack_tally_value


class TestTallyPacking:

    def test_single_vote(self):
        assert pack_tally_value(0) == 0
        assert pack_tally_value(3) == 3 * (3 + MAX_VOTES)
        assert unpack_tally_value(pack_tally_value(3)) == (3, 9)

    def test_accumulate(self):
        results = [0, 0, 0]
        results = accumulate(results, [1, 0, 4])
        results = accumulate(results, [2, 0, 4])
        assert [unpack_tally_value(r) for r in results] == [(3, 5), (0, 0), (8, 32)]


class TestCommitmentLog:

    def test_chain(self):
        log = CommitmentLog()
        assert log.latest(STATE) == 0
        log.append(STATE, 0, 11)
        entry = log.append(STATE, 11, 22)
        assert entry.index == 1
        assert log.latest(STATE) == 22
        assert [e.new for e in log.history(STATE)] == [11, 22]
        assert len(log) == 2

    def test_streams_are_independent(self):
        log = CommitmentLog()
        log.append(STATE, 0, 11)
        log.append(TALLY, 0, 5)
        assert log.latest(TALLY) == 5
        assert log.latest(STATE) == 11

    def test_mismatch(self):
        log = CommitmentLog()
        log.append(STATE, 0, 11)
        with pytest.raises(CommitmentMismatchError):
            log.append(STATE, 12, 13)
        with pytest.raises(CommitmentMismatchError):
            log.check(STATE, 0)


class TestNullifierSet:

    def test_spend_once(self):
        nullifiers = NullifierSet([7])
        assert 7 in nullifiers
        assert nullifiers.add(8)
        assert not nullifiers.add(8)
        assert len(nullifiers) == 2
        assert set(nullifiers) == {7, 8}
