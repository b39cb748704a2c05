"""Unit tests for charlib/core/modules/reference_ranker.py."""

from charlib.config import RankingWeights
from charlib.core.modules.reference_ranker import ReferenceRanker
from charlib.core.types import AssetKind, PromptProfile
from tests.unit.fakes import core, generated, make_asset, master

EMPTY_PROFILE = PromptProfile()


class TestScore:
    """Tests for the additive scoring formula."""

    def setup_method(self):
        self.ranker = ReferenceRanker()

    def test_kind_base_scores(self):
        assert self.ranker.score(make_asset("m", AssetKind.MASTER), EMPTY_PROFILE) == 10
        assert self.ranker.score(make_asset("c", AssetKind.CORE_SET), EMPTY_PROFILE) == 8
        assert self.ranker.score(make_asset("g", AssetKind.GENERATED), EMPTY_PROFILE) == 5

    def test_quality_and_consistency_bonuses_at_thresholds(self):
        asset = make_asset("c", AssetKind.CORE_SET, quality=80, consistency=85)

        assert self.ranker.score(asset, EMPTY_PROFILE) == 8 + 5 + 5

    def test_no_bonus_just_below_thresholds(self):
        asset = make_asset("c", AssetKind.CORE_SET, quality=79.9, consistency=84.9)

        assert self.ranker.score(asset, EMPTY_PROFILE) == 8

    def test_axis_matches(self):
        asset = make_asset("c", shot_type="close-up", angle="front")
        profile = PromptProfile(shot_type="close-up", angle="front")

        assert self.ranker.score(asset, profile) == 8 + 3 + 3

    def test_unset_profile_axis_never_matches(self):
        asset = make_asset("c", shot_type=None, angle=None)

        assert self.ranker.score(asset, EMPTY_PROFILE) == 8

    def test_keyword_overlap_is_capped(self):
        words = ("a1", "b1", "c1", "d1", "e1", "f1", "g1")
        asset = make_asset("c", keywords=words)
        profile = PromptProfile(keywords=frozenset(words))

        assert self.ranker.score(asset, profile) == 8 + 5

    def test_custom_weights(self):
        ranker = ReferenceRanker(RankingWeights(master_base=100))

        assert ranker.score(master(quality=0, consistency=0), EMPTY_PROFILE) == 100


class TestRank:
    """Tests for ordering and tie-breaking."""

    def setup_method(self):
        self.ranker = ReferenceRanker()

    def test_master_wins_ties_on_kind_priority(self):
        """With equal scores, master ranks ahead of core set ahead of generated."""
        pool = [
            generated("g", quality=0, consistency=0),
            core("c", quality=0, consistency=0),
            master("m", quality=0, consistency=0),
        ]
        # Equalize scores through weights
        ranker = ReferenceRanker(RankingWeights(master_base=5, core_set_base=5, generated_base=5))

        assert [a.id for a in ranker.rank(pool, EMPTY_PROFILE)] == ["m", "c", "g"]

    def test_higher_score_beats_kind_priority(self):
        pool = [master("m", quality=50, consistency=50), core("c", quality=95, consistency=95)]

        assert [a.id for a in self.ranker.rank(pool, EMPTY_PROFILE)] == ["c", "m"]

    def test_newer_wins_when_score_and_kind_tie(self):
        pool = [core("old", age_minutes=10), core("new", age_minutes=1)]

        assert [a.id for a in self.ranker.rank(pool, EMPTY_PROFILE)] == ["new", "old"]

    def test_id_breaks_remaining_ties(self):
        pool = [core("b"), core("a")]

        assert [a.id for a in self.ranker.rank(pool, EMPTY_PROFILE)] == ["a", "b"]

    def test_excluded_ids_are_omitted(self):
        pool = [master("m"), core("c1"), core("c2")]

        ranked = self.ranker.rank(pool, EMPTY_PROFILE, excluded={"m", "c1"})

        assert [a.id for a in ranked] == ["c2"]

    def test_all_excluded_returns_empty(self):
        pool = [master("m")]

        assert self.ranker.rank(pool, EMPTY_PROFILE, excluded=["m"]) == []

    def test_empty_pool(self):
        assert self.ranker.rank([], EMPTY_PROFILE) == []

    def test_does_not_mutate_pool(self):
        pool = [core("b"), core("a")]
        snapshot = list(pool)

        self.ranker.rank(pool, EMPTY_PROFILE)

        assert pool == snapshot

    def test_order_is_independent_of_input_order(self):
        pool = [master("m"), core("c1", shot_type="wide"), generated("g1"), core("c2")]
        profile = PromptProfile(shot_type="wide")

        forward = [a.id for a in self.ranker.rank(pool, profile)]
        backward = [a.id for a in self.ranker.rank(list(reversed(pool)), profile)]

        assert forward == backward

    def test_rank_with_scores_reports_scores(self):
        ranked = self.ranker.rank_with_scores([core("c", quality=90, consistency=90)], EMPTY_PROFILE)

        assert ranked[0].asset.id == "c"
        assert ranked[0].score == 18
