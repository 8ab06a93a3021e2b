import unittest

from coref_fixtures import make_doc, partition
from searncoref.clustering import config
from searncoref.clustering.features import compute_features
from searncoref.clustering.state import State, TrainingContext, order_pairs, truncate_pairs
from searncoref.errors import DataConsistencyError
from searncoref.models.linear import SimpleLinearClassifier


class CountingClassifier(SimpleLinearClassifier):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def weight_feature_product(self, features):
        self.calls += 1
        return super().weight_feature_product(features)


def merging_classifier(threshold=0.5):
    """merges iff the pair score is above threshold"""
    classifier = CountingClassifier()
    for suffix in ['', '-single']:
        classifier.set_weight('max-ranking' + suffix, 1.0)
        classifier.set_weight('bias' + suffix, -threshold)
    return classifier


class TestState(unittest.TestCase):

    def setUp(self):
        self.opt = config.get_opt(use_classification=False)
        self.context = TrainingContext(self.opt)
        self.doc = make_doc(0, [[0, 1, 2], [3, 4], [5]], mention_types={1: 'PRONOMINAL'},
                            anaphoricity={1: 0.7})

    def assert_partition(self, state):
        mentions = [m for c in state.clusters for m in c.mentions]
        self.assertEqual(sorted(mentions), sorted(self.doc.mentions))
        for c in state.clusters:
            for m in c.mentions:
                self.assertIs(state.mention_to_cluster[m], c)

    def test_initial_state(self):
        state = State(self.doc, self.context)
        self.assertEqual(partition(state), [[m] for m in self.doc.mentions])
        self.assertEqual(state.current_index, 0)
        self.assertFalse(state.is_complete())
        self.assertEqual(len(state.global_features), len(self.doc.classification_scores))

    def test_partition_and_skip_ahead_invariants(self):
        for pattern in [[True], [False], [True, False], [False, False, True]]:
            state = State(self.doc, self.context)
            step = 0
            while not state.is_complete():
                state.do_action(pattern[step % len(pattern)])
                step += 1
                self.assert_partition(state)
                if not state.is_complete():
                    m1, m2 = state.current_pair()
                    self.assertIsNot(state.mention_to_cluster[m1], state.mention_to_cluster[m2])

    def test_merging_everything(self):
        state = State(self.doc, self.context)
        while not state.is_complete():
            state.do_action(True)
        self.assertEqual(partition(state), [[0, 1, 2, 3, 4, 5]])

    def test_no_action_after_complete(self):
        state = State(self.doc, self.context)
        while not state.is_complete():
            state.do_action(False)
        with self.assertRaises(DataConsistencyError):
            state.do_action(True)
        with self.assertRaises(DataConsistencyError):
            state.get_actions(SimpleLinearClassifier())
        decisions = dict(state.hashed_scores)
        with self.assertRaises(DataConsistencyError):
            state.do_best_action(SimpleLinearClassifier())
        self.assertEqual(state.hashed_scores, decisions)

    def test_larger_cluster_absorbs_smaller(self):
        doc = make_doc(1, [[0, 1, 2]], pair_scores={(0, 1): 0.9, (1, 2): 0.8})
        state = State(doc, self.context)
        state.do_action(True)
        big = state.mention_to_cluster[0]
        state.do_action(True)
        self.assertIs(state.mention_to_cluster[2], big)
        self.assertEqual(len(state.clusters), 1)

    def test_same_partition_same_hash(self):
        doc = make_doc(1, [[0, 1, 2]], pair_scores={(0, 1): 0.9, (1, 2): 0.8, (0, 2): 0.7})
        first = State(doc, self.context)
        first.do_action(True)
        first.do_action(True)
        self.assertTrue(first.is_complete())

        second = State(doc, self.context)
        second.do_action(False)
        second.do_action(True)
        second.do_action(True)
        self.assertTrue(second.is_complete())

        self.assertEqual(partition(first), partition(second))
        self.assertEqual(first.hash, second.hash)

    def test_copy_does_not_touch_original(self):
        state = State(self.doc, self.context)
        copy = state.copy()
        copy.do_action(True)
        self.assertEqual(len(state.clusters), len(self.doc.mentions))
        self.assertEqual(state.current_index, 0)
        self.assertIs(copy.hashed_scores, state.hashed_scores)

    def test_document_without_pairs(self):
        doc = make_doc(1, [[0], [1]], pair_scores={})
        state = State(doc, self.context)
        self.assertTrue(state.is_complete())
        with self.assertRaises(DataConsistencyError):
            state.do_best_action(SimpleLinearClassifier())

    def test_unknown_mention_in_pair(self):
        doc = make_doc(1, [[0], [1]], pair_scores={(0, 7): 0.5})
        with self.assertRaises(DataConsistencyError):
            State(doc, self.context)


class TestCandidatePairs(unittest.TestCase):

    def test_sorted_by_ranking_score(self):
        doc = make_doc(0, [[0, 1, 2]], pair_scores={(0, 1): 0.2, (1, 2): 0.9, (0, 2): 0.5})
        pairs, _ = order_pairs(doc, config.get_opt())
        self.assertEqual(pairs, [(1, 2), (0, 2), (0, 1)])

    def test_sorted_by_classification_score(self):
        doc = make_doc(0, [[0, 1, 2]], pair_scores={(0, 1): 0.2, (1, 2): 0.9, (0, 2): 0.5})
        doc.ranking_scores = {(0, 1): 0.9, (1, 2): 0.1, (0, 2): 0.5}
        pairs, _ = order_pairs(doc, config.get_opt(use_ranking=False))
        self.assertEqual(pairs, [(1, 2), (0, 2), (0, 1)])
        pairs, _ = order_pairs(doc, config.get_opt())
        self.assertEqual(pairs, [(0, 1), (0, 2), (1, 2)])

    def test_left_to_right(self):
        doc = make_doc(0, [[0, 1, 2]], pair_scores={(0, 1): 0.2, (1, 2): 0.9, (0, 2): 0.5})
        pairs, _ = order_pairs(doc, config.get_opt(left_to_right=True))
        self.assertEqual(pairs, [(0, 1), (0, 2), (1, 2)])

    def test_low_scores_cut_after_min_pairs(self):
        opt = config.get_opt(min_pairs=2)
        pairs = [(0, i) for i in range(1, 6)]
        scores = dict(zip(pairs, [0.9, 0.8, 0.1, 0.1, 0.1]))
        self.assertEqual(truncate_pairs(pairs, scores, opt), 3)

    def test_low_scores_kept_before_min_pairs(self):
        opt = config.get_opt(min_pairs=10)
        pairs = [(0, i) for i in range(1, 6)]
        scores = dict(zip(pairs, [0.9, 0.8, 0.1, 0.1, 0.1]))
        self.assertEqual(truncate_pairs(pairs, scores, opt), 5)

    def test_early_stop(self):
        opt = config.get_opt(early_stop_threshold=1, early_stop_val=1.0)
        pairs = [(0, i) for i in range(1, 4)]
        scores = dict(zip(pairs, [0.9, 0.8, 0.7]))
        # 1 / 0.8 > 1
        self.assertEqual(truncate_pairs(pairs, scores, opt), 1)

    def test_early_stop_on_zero_and_negative_scores(self):
        opt = config.get_opt(early_stop_threshold=0, early_stop_val=1.0, min_pairwise_score=-1.0)
        pairs = [(0, i) for i in range(1, 5)]
        # a zero score stops everywhere but the first pair; negative scores never stop
        scores = dict(zip(pairs, [0.0, -0.5, 0.0, 0.9]))
        self.assertEqual(truncate_pairs(pairs, scores, opt), 2)
        scores = dict(zip(pairs, [-0.2, -0.5, -0.1, -0.3]))
        self.assertEqual(truncate_pairs(pairs, scores, opt), 4)

    def test_truncated_pairs_are_never_decided(self):
        opt = config.get_opt(min_pairs=0)
        doc = make_doc(0, [[0, 1, 2]], pair_scores={(0, 1): 0.9, (1, 2): 0.1, (0, 2): 0.05})
        state = State(doc, TrainingContext(opt))
        # (1, 2) is already below min_pairwise_score
        self.assertEqual(state.mention_pairs, [(0, 1)])
        self.assertEqual(len(state.global_features), 3)
        self.assertEqual(state.global_features[2].size, 1)


class TestDecisionCache(unittest.TestCase):

    def setUp(self):
        self.context = TrainingContext(config.get_opt(use_classification=False))
        self.doc = make_doc(0, [[0, 1], [2], [3]],
                            pair_scores={(0, 1): 0.9, (1, 2): 0.1, (2, 3): 0.05})

    def test_shared_merge_key_reuses_decision(self):
        classifier = merging_classifier()
        state = State(self.doc, self.context)
        copy = state.copy()

        first = state.do_best_action(classifier)
        self.assertEqual(classifier.calls, 1)
        self.assertEqual(self.context.score_misses, 1)
        self.assertEqual(self.context.features_cache.misses, 1)

        second = copy.do_best_action(classifier)
        self.assertEqual(first, second)
        self.assertEqual(classifier.calls, 1)
        self.assertEqual(self.context.score_hits, 1)
        self.assertEqual(self.context.features_cache.misses, 1)
        self.assertEqual(self.context.features_cache.hits, 0)

    def test_features_shared_between_states(self):
        classifier = merging_classifier()
        State(self.doc, self.context).do_best_action(classifier)
        State(self.doc, self.context).do_best_action(classifier)
        self.assertEqual(self.context.features_cache.hits, 1)
        self.assertEqual(classifier.calls, 2)

    def test_counters_frozen_during_evaluation(self):
        classifier = merging_classifier()
        with self.context.evaluation():
            state = State(self.doc, self.context)
            while not state.is_complete():
                state.do_best_action(classifier)
        self.assertTrue(self.context.is_training)
        self.assertEqual(self.context.score_misses, 0)
        self.assertEqual(self.context.features_cache.misses, 0)
        self.assertEqual(self.context.hit_rates(), (0.0, 0.0, 0.0))

    def test_greedy_decisions(self):
        classifier = merging_classifier()
        state = State(self.doc, self.context)
        decisions = []
        while not state.is_complete():
            decisions.append((state.current_pair(), state.do_best_action(classifier)))
        self.assertEqual(decisions, [((0, 1), True), ((1, 2), False), ((2, 3), False)])
        self.assertEqual(partition(state), [[0, 1], [2], [3]])


class TestCosts(unittest.TestCase):

    def setUp(self):
        self.opt = config.get_opt(use_classification=False)
        self.doc = make_doc(0, [[0, 1], [2], [3]],
                            pair_scores={(0, 1): 0.9, (1, 2): 0.1, (2, 3): 0.05})

    def test_final_cost_is_loss_of_partition(self):
        context = TrainingContext(self.opt)
        state = State(self.doc, context)
        # all singletons: B3 and MUC are both 0
        self.assertEqual(state.get_final_cost(SimpleLinearClassifier()), 1.0)
        state.do_action(True)
        self.assertAlmostEqual(state.get_final_cost(SimpleLinearClassifier()), 0.0)
        self.assertEqual(len(state.hashed_costs), 2)
        self.assertEqual(context.cost_misses, 2)

    def test_exact_loss_reuses_costs(self):
        context = TrainingContext(config.get_opt(use_classification=False, exact_loss=True))
        classifier = merging_classifier()
        first = State(self.doc, context)
        cost = first.get_final_cost(classifier)
        self.assertTrue(first.is_complete())
        self.assertAlmostEqual(cost, 0.0)
        fresh = State(self.doc, context)
        fresh.hashed_costs[fresh.hash] = 0.5
        self.assertEqual(fresh.get_final_cost(classifier), 0.5)
        self.assertEqual(context.cost_hits, 1)

    def test_actions_are_regrets(self):
        context = TrainingContext(self.opt)
        state = State(self.doc, context)
        merge, no_merge = state.get_actions(merging_classifier())
        # merging 0 and 1 gives the gold partition
        self.assertEqual(merge.cost, 0.0)
        self.assertAlmostEqual(no_merge.cost, len(self.doc.mentions) / 100.0)
        self.assertEqual(no_merge.features, {})
        self.assertIn('max-ranking-single', merge.features)
        self.assertEqual(state.current_index, 0)

    def test_actions_prefer_no_merge_for_wrong_pair(self):
        context = TrainingContext(self.opt)
        state = State(self.doc, context)
        state.do_action(True)
        merge, no_merge = state.get_actions(merging_classifier())
        self.assertGreater(merge.cost, 0.0)
        self.assertEqual(no_merge.cost, 0.0)


class TestFeatures(unittest.TestCase):

    def setUp(self):
        self.doc = make_doc(0, [[0, 1, 2], [3]], mention_types={1: 'PRONOMINAL'},
                            anaphoricity={1: 0.7, 3: 0.2})
        self.context = TrainingContext(config.get_opt())

    def test_singleton_features(self):
        state = State(self.doc, self.context)
        features = compute_features(self.doc, state.c1, state.c2, state.global_features[0])
        self.assertTrue(all(name.endswith('-single') for name in features))
        self.assertEqual(features['bias-single'], 1.0)
        self.assertEqual(features['max-ranking-single'], 0.85)
        self.assertEqual(features['max-classification-single'], 0.85)
        self.assertNotIn('anaphorSeen-single', features)

    def test_cluster_features(self):
        state = State(self.doc, self.context)
        state.do_action(True)
        features = compute_features(self.doc, state.c1, state.c2, state.global_features[state.current_index])
        self.assertEqual(features['bias'], 1.0)
        self.assertIn('max-ranking', features)
        self.assertIn('min-classification', features)
        self.assertIn('avg-ranking', features)
        self.assertTrue(any(name.startswith('avgLog_') for name in features))
        self.assertGreater(features['percentComplete'], 0.0)

    def test_anaphoricity_of_later_cluster(self):
        doc = make_doc(0, [[0, 1]], pair_scores={(0, 1): 0.9}, anaphoricity={0: 0.1, 1: 0.6})
        state = State(doc, self.context)
        features = compute_features(doc, state.c1, state.c2, state.global_features[0])
        self.assertEqual(features['anaphoricity-single'], 0.6)

    def test_ranking_features_only(self):
        state = State(self.doc, self.context)
        features = compute_features(self.doc, state.c1, state.c2, state.global_features[0],
                                    use_classification=False)
        self.assertNotIn('max-classification-single', features)


if __name__ == '__main__':
    unittest.main()
