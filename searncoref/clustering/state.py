# Copyright 2017 Neural Networks and Deep Learning lab, MIPT
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


from contextlib import contextmanager

import numpy as np

from ..errors import DataConsistencyError
from ..utils.coreference_utils import get_combined_f1
from .actions import CandidateAction
from .cluster import HASH_MASK, Cluster, MentionHasher, merge_key
from .features import FeaturesCache, build_global_features, get_features


def _ratio(hits, misses):
    total = hits + misses
    return 0.0 if total == 0 else hits / total


class TrainingContext:
    """Caches and diagnostics shared by all States of one training run or one Clusterer.

    Attributes:
        opt: clusterer options
        features_cache: FeaturesCache keyed by MergeKey
        hasher: MentionHasher giving cluster hashes
        is_training: hit/miss counters are only updated while True
    """

    def __init__(self, opt, features_cache=None, hasher=None):
        self.opt = opt
        self.features_cache = features_cache if features_cache is not None else FeaturesCache()
        self.hasher = hasher if hasher is not None else MentionHasher(opt['random_seed'])
        self.is_training = True
        self.score_hits = 0
        self.score_misses = 0
        self.cost_hits = 0
        self.cost_misses = 0

    def record_score(self, hit):
        if self.is_training:
            if hit:
                self.score_hits += 1
            else:
                self.score_misses += 1

    def record_cost(self, hit):
        if self.is_training:
            if hit:
                self.cost_hits += 1
            else:
                self.cost_misses += 1

    @contextmanager
    def evaluation(self):
        """counters are frozen inside the block"""
        is_training = self.is_training
        self.is_training = False
        try:
            yield self
        finally:
            self.is_training = is_training

    def hit_rates(self):
        """(cost hit rate, score hit rate, features hit rate)"""
        return (_ratio(self.cost_hits, self.cost_misses),
                _ratio(self.score_hits, self.score_misses),
                self.features_cache.hit_rate())


def order_pairs(doc, opt):
    """Candidate pairs in decision order and the score table used to order and truncate them"""
    scores = doc.ranking_scores if opt['use_ranking'] else doc.classification_scores
    all_pairs = sorted(doc.classification_scores)
    mentions = set(doc.mentions)
    for pair in all_pairs:
        for m in pair:
            if m not in mentions:
                raise DataConsistencyError('Pair {} of document {} references unknown mention {}'
                                           .format(pair, doc.id, m))
    if opt['left_to_right']:
        all_pairs.sort(key=lambda p: (doc.mention_indices[p[1]], doc.mention_indices[p[0]]))
    else:
        all_pairs.sort(key=lambda p: -scores.get(p, 0.0))
    return all_pairs, scores


def truncate_pairs(all_pairs, scores, opt):
    """number of leading pairs kept; drops the long tail of low scoring pairs"""
    for i, pair in enumerate(all_pairs):
        score = scores.get(pair, 0.0)
        if score < opt['min_pairwise_score'] and i > opt['min_pairs']:
            return i
        # i / 0 only stops for i > 0; negative scores never stop
        if i >= opt['early_stop_threshold'] and (score == 0 and i > 0 or
                                                  score > 0 and i / score > opt['early_stop_val']):
            return i
    return len(all_pairs)


def _scaled(cluster_hash):
    return (7 * cluster_hash) & HASH_MASK


class State:
    """Partition of the mentions of a document plus the position among the candidate pairs.

    Each step decides whether to merge the clusters of the pair under the cursor.
    Pairs whose mentions are already in one cluster are skipped, so they are
    never offered as a decision.
    """

    def __init__(self, doc, context):
        self.doc = doc
        self.context = context
        self.hashed_scores = dict()
        self.hashed_costs = dict()
        self.clusters = []
        self.mention_to_cluster = dict()
        self.hash = 0
        for m in doc.mentions:
            c = Cluster.new(m, context.hasher(doc.id, m))
            self.clusters.append(c)
            self.mention_to_cluster[m] = c
            self.hash ^= _scaled(c.hash)

        all_pairs, scores = order_pairs(doc, context.opt)
        n_kept = truncate_pairs(all_pairs, scores, context.opt)
        self.mention_pairs = all_pairs[:n_kept]
        self.global_features = build_global_features(doc, all_pairs, n_kept)
        self.current_index = 0
        self.c1 = None
        self.c2 = None
        self._skip_merged()

    def copy(self):
        """State at the same position; caches and pairs are shared, clusters are copied"""
        state = State.__new__(State)
        state.doc = self.doc
        state.context = self.context
        state.hashed_scores = self.hashed_scores
        state.hashed_costs = self.hashed_costs
        state.hash = self.hash
        state.mention_pairs = self.mention_pairs
        state.global_features = self.global_features
        state.current_index = self.current_index
        state.clusters = []
        state.mention_to_cluster = dict()
        for c in self.clusters:
            c_copy = c.copy()
            state.clusters.append(c_copy)
            for m in c_copy.mentions:
                state.mention_to_cluster[m] = c_copy
        state.c1 = None
        state.c2 = None
        if not state.is_complete():
            state.set_clusters()
        return state

    def set_clusters(self):
        m1, m2 = self.mention_pairs[self.current_index]
        self.c1 = self.mention_to_cluster[m1]
        self.c2 = self.mention_to_cluster[m2]

    def current_pair(self):
        return self.mention_pairs[self.current_index]

    def is_complete(self):
        return self.current_index >= len(self.mention_pairs)

    def merge_key(self):
        return merge_key(self.c1, self.c2, self.current_index, self.doc.id)

    def _skip_merged(self):
        while not self.is_complete():
            self.set_clusters()
            if self.c1 is not self.c2:
                break
            self.current_index += 1

    def do_action(self, is_merge):
        """Merges (or not) the clusters of the current pair and moves to the next pair to decide"""
        if self.is_complete():
            raise DataConsistencyError('No decision left in document {}'.format(self.doc.id))
        if is_merge:
            c1, c2 = self.c1, self.c2
            if c2.size() > c1.size():
                c1, c2 = c2, c1
            self.hash ^= _scaled(c1.hash)
            self.hash ^= _scaled(c2.hash)
            c1.merge(c2)
            for m in c2.mentions:
                self.mention_to_cluster[m] = c1
            self.clusters.remove(c2)
            self.hash ^= _scaled(c1.hash)
        self.current_index += 1
        self._skip_merged()

    def current_features(self):
        return get_features(self.doc, self.c1, self.c2, self.global_features[self.current_index], self.context)

    def do_best_action(self, classifier):
        """Takes the action the classifier scores higher; decisions are memoized by MergeKey"""
        if self.is_complete():
            raise DataConsistencyError('No decision left in document {}'.format(self.doc.id))
        key = self.merge_key()
        do_merge = self.hashed_scores.get(key)
        if do_merge is None:
            do_merge = classifier.weight_feature_product(self.current_features()) > 0
            self.hashed_scores[key] = do_merge
            self.context.record_score(hit=False)
        else:
            self.context.record_score(hit=True)
        self.do_action(do_merge)
        return do_merge

    def mention_to_system(self):
        return {m: c.mentions for m, c in self.mention_to_cluster.items()}

    def get_final_cost(self, classifier):
        """1 - combined F-1 of the partition, after finishing the document with the policy in exact_loss mode"""
        while self.context.opt['exact_loss'] and not self.is_complete():
            if self.hash in self.hashed_costs:
                self.context.record_cost(hit=True)
                return self.hashed_costs[self.hash]
            self.do_best_action(classifier)
        self.context.record_cost(hit=False)
        cost = 1.0 - get_combined_f1(self.context.opt['muc_weight'], self.doc.gold_clusters,
                                     [c.mentions for c in self.clusters],
                                     self.doc.mention_to_gold, self.mention_to_system())
        self.hashed_costs[self.hash] = cost
        return cost

    def update_evaluator(self, evaluator):
        evaluator.update(self.doc.gold_clusters, [c.mentions for c in self.clusters],
                         self.doc.mention_to_gold, self.mention_to_system())

    def get_actions(self, classifier):
        """(merge, no merge) CandidateActions with costs as regret w.r.t. the better of the two"""
        if self.is_complete():
            raise DataConsistencyError('No candidate actions left in document {}'.format(self.doc.id))
        merge_features = self.current_features()
        merge_score = np.exp(classifier.weight_feature_product(merge_features))
        self.hashed_scores[self.merge_key()] = bool(merge_score > 0.5)

        merge = self.copy()
        merge.do_action(True)
        merge_cost = merge.get_final_cost(classifier)

        no_merge = self.copy()
        no_merge.do_action(False)
        no_merge_cost = no_merge.get_final_cost(classifier)

        weight = len(self.doc.mentions) / 100.0
        min_cost = min(merge_cost, no_merge_cost)
        return (CandidateAction(merge_features, weight * (merge_cost - min_cost)),
                CandidateAction(dict(), weight * (no_merge_cost - min_cost)))
