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


import threading
from collections import defaultdict

import numpy as np

from .cluster import merge_key

PRONOMINAL = 'PRONOMINAL'
NON_PRONOMINAL = 'NON_PRONOMINAL'


class GlobalFeatures:
    """Per-position features, computed once for every candidate pair of a document"""

    __slots__ = ('anaphor_seen', 'current_index', 'size', 'doc_size')

    def __init__(self, anaphor_seen, current_index, size, doc_size):
        self.anaphor_seen = anaphor_seen
        self.current_index = current_index
        self.size = size
        self.doc_size = doc_size


def build_global_features(doc, all_pairs, n_kept):
    """
    Args:
        doc: ClustererDoc
        all_pairs: every candidate pair in decision order
        n_kept: number of pairs that survived truncation

    Returns:
        list of GlobalFeatures, one per pair in all_pairs
    """
    seen_anaphors = set()
    global_features = []
    doc_size = len(doc.mentions) / 300.0
    for j, (antecedent, anaphor) in enumerate(all_pairs):
        global_features.append(GlobalFeatures(anaphor_seen=anaphor in seen_anaphors,
                                              current_index=j,
                                              size=n_kept,
                                              doc_size=doc_size))
        seen_anaphors.add(anaphor)
    return global_features


class FeaturesCache:
    """Features of decision points keyed by MergeKey.

    Lives for one training run (or one Clusterer) and is shared by every State
    created in it; safe to use from several threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._features = dict()
        self.hits = 0
        self.misses = 0

    def get(self, key, count=True):
        with self._lock:
            frozen = self._features.get(key)
            if count:
                if frozen is None:
                    self.misses += 1
                else:
                    self.hits += 1
        return None if frozen is None else dict(frozen)

    def put(self, key, features):
        with self._lock:
            self._features[key] = tuple(features.items())

    def hit_rate(self):
        total = self.hits + self.misses
        return 0.0 if total == 0 else self.hits / total

    def clear(self):
        with self._lock:
            self._features.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self):
        return len(self._features)


def capped_log(x):
    return float(np.log(max(x, 1e-8)))


def add_suffix(features, suffix):
    return {name + suffix: value for name, value in features.items()}


def get_pair_score(scores, mention_pair):
    """score of the pair in either orientation, 0 when the pair is not scored"""
    if mention_pair not in scores:
        mention_pair = (mention_pair[1], mention_pair[0])
    return scores.get(mention_pair, 0.0)


def pair_features(mention_pair, scores):
    return {'max': get_pair_score(scores, mention_pair)}


def _coarse_type(doc, mention):
    return PRONOMINAL if doc.mention_types.get(mention) == PRONOMINAL else NON_PRONOMINAL


def between_features(doc, mention_pairs, scores):
    """max, min and averages of scores over all pairs, also split by mention type conjunction"""
    max_score = 0.0
    min_score = 1.0
    totals = defaultdict(float)
    totals_log = defaultdict(float)
    for mention_pair in mention_pairs:
        score = get_pair_score(scores, mention_pair)
        log_score = capped_log(score)
        conj = '_{}_{}'.format(_coarse_type(doc, mention_pair[0]), _coarse_type(doc, mention_pair[1]))
        max_score = max(max_score, score)
        min_score = min(min_score, score)
        for key in ['', conj]:
            totals[key] += score
            totals_log[key] += log_score

    features = {'max': max_score, 'min': min_score}
    for key in totals:
        features['avg' + key] = totals[key] / len(mention_pairs)
        features['avgLog' + key] = totals_log[key] / len(mention_pairs)
    return features


def earliest_mention(cluster, doc):
    return min(cluster.mentions, key=lambda m: doc.mention_indices[m])


def compute_features(doc, c1, c2, gf, use_classification=True, use_ranking=True):
    features = defaultdict(float)
    if gf.anaphor_seen:
        features['anaphorSeen'] += 1.0
    features['docSize'] += gf.doc_size
    features['percentComplete'] += gf.current_index / float(gf.size)
    features['bias'] += 1.0

    earliest1 = earliest_mention(c1, doc)
    earliest2 = earliest_mention(c2, doc)
    if doc.mention_indices[earliest1] > doc.mention_indices[earliest2]:
        earliest1, earliest2 = earliest2, earliest1
    features['anaphoricity'] += doc.anaphoricity_scores.get(earliest2, 0.0)

    if c1.size() == 1 and c2.size() == 1:
        mention_pair = (c1.mentions[0], c2.mentions[0])
        pair_features_ = dict()
        if use_classification:
            pair_features_.update(add_suffix(pair_features(mention_pair, doc.classification_scores),
                                             '-classification'))
        if use_ranking:
            pair_features_.update(add_suffix(pair_features(mention_pair, doc.ranking_scores), '-ranking'))
        for name, value in pair_features_.items():
            features[name] += value
        return add_suffix(features, '-single')

    between = [(m1, m2) for m1 in c1.mentions for m2 in c2.mentions]
    if use_classification:
        for name, value in add_suffix(between_features(doc, between, doc.classification_scores),
                                      '-classification').items():
            features[name] += value
    if use_ranking:
        for name, value in add_suffix(between_features(doc, between, doc.ranking_scores),
                                      '-ranking').items():
            features[name] += value
    return dict(features)


def get_features(doc, c1, c2, gf, context):
    """Features of merging c1 and c2 at the position described by gf, memoized in context.features_cache"""
    key = merge_key(c1, c2, gf.current_index, doc.id)
    features = context.features_cache.get(key, count=context.is_training)
    if features is not None:
        return features
    features = compute_features(doc, c1, c2, gf,
                                use_classification=context.opt['use_classification'],
                                use_ranking=context.opt['use_ranking'])
    context.features_cache.put(key, features)
    return features
