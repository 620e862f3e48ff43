import random
from collections import Counter

from giveawaybot.sampler import sample


def test_sample_returns_distinct_members_of_pool():
    pool = list(range(50))
    drawn = sample(pool, 10, rng=random.Random(1))
    assert len(drawn) == 10
    assert len(set(drawn)) == 10
    assert set(drawn) <= set(pool)


def test_sample_is_reproducible_with_a_seed():
    pool = ["a", "b", "c", "d", "e"]
    assert sample(pool, 3, rng=random.Random(99)) == sample(pool, 3, rng=random.Random(99))


def test_sample_larger_than_pool_returns_whole_pool():
    pool = [1, 2, 3]
    drawn = sample(pool, 10, rng=random.Random(3))
    assert sorted(drawn) == [1, 2, 3]


def test_sample_does_not_mutate_pool():
    pool = [5, 4, 3, 2, 1]
    sample(pool, 2, rng=random.Random(0))
    assert pool == [5, 4, 3, 2, 1]


def test_sample_of_nothing():
    assert sample([1, 2, 3], 0) == []
    assert sample([], 3) == []


def test_every_participant_is_equally_likely():
    rng = random.Random(2024)
    counts = Counter(sample(["a", "b", "c"], 1, rng=rng)[0] for _ in range(3000))
    assert set(counts) == {"a", "b", "c"}
    for value in counts.values():
        assert 800 < value < 1200
