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


"""B3, MUC and combined clustering metrics over mention id partitions.

Clusters are sequences of mention ids. mention_to_gold / mention_to_system map a
mention to the cluster containing it; mentions missing from the map count as
unlinked.
"""

from collections import Counter


def maybe_divide(x, y):
    return 0 if y == 0 else x / float(y)


def f1(precision, recall):
    return 0 if (precision + recall) == 0 else 2 * precision * recall / (precision + recall)


def _key(cluster):
    return tuple(cluster)


def b3_score(clusters, mention_to_gold):
    """B3 numerator and denominator of clusters against another partition.

    Singleton clusters are skipped and overlaps with singleton clusters of
    the other partition are not counted.

    Returns:
        (num, den)
    """
    num = 0.0
    den = 0
    for c in clusters:
        if len(c) == 1:
            continue
        gold_counts = Counter()
        for m in c:
            gold_cluster = mention_to_gold.get(m)
            if gold_cluster is not None:
                gold_counts[_key(gold_cluster)] += 1
        correct = 0.0
        for gold_cluster, count in gold_counts.items():
            if len(gold_cluster) != 1:
                correct += count * count
        num += correct / len(c)
        den += len(c)
    return num, den


def muc_score(clusters, mention_to_gold):
    """MUC correct links and total links of clusters against another partition.

    Returns:
        (num, den)
    """
    tp = 0
    predicted_positive = 0
    for c in clusters:
        predicted_positive += len(c) - 1
        tp += len(c)
        linked = set()
        for m in c:
            gold_cluster = mention_to_gold.get(m)
            if gold_cluster is None:
                tp -= 1
            else:
                linked.add(_key(gold_cluster))
        tp -= len(linked)
    return tp, predicted_positive


class Evaluator:
    """Accumulates precision and recall counts over documents"""

    name = None

    def __init__(self):
        self.p_num = 0.0
        self.p_den = 0.0
        self.r_num = 0.0
        self.r_den = 0.0

    def get_score(self, clusters, mention_to_gold):
        raise NotImplementedError

    def update(self, gold_clusters, clusters, mention_to_gold, mention_to_system):
        """Adds one document.

        Args:
            gold_clusters: list of gold clusters
            clusters: list of predicted clusters
            mention_to_gold: mention -> gold cluster
            mention_to_system: mention -> predicted cluster
        """
        p_num, p_den = self.get_score(clusters, mention_to_gold)
        r_num, r_den = self.get_score(gold_clusters, mention_to_system)
        self.p_num += p_num
        self.p_den += p_den
        self.r_num += r_num
        self.r_den += r_den

    def get_precision(self):
        return maybe_divide(self.p_num, self.p_den)

    def get_recall(self):
        return maybe_divide(self.r_num, self.r_den)

    def get_f1(self):
        return f1(self.get_precision(), self.get_recall())

    def report(self):
        return {'p': self.get_precision(), 'r': self.get_recall(), 'f-1': self.get_f1()}


class B3Evaluator(Evaluator):
    name = 'bcub'

    def get_score(self, clusters, mention_to_gold):
        return b3_score(clusters, mention_to_gold)


class MUCEvaluator(Evaluator):
    name = 'muc'

    def get_score(self, clusters, mention_to_gold):
        return muc_score(clusters, mention_to_gold)


class CombinedEvaluator:
    """muc_weight * MUC F-1 + (1 - muc_weight) * B3 F-1"""

    name = 'combined'

    def __init__(self, muc_weight):
        self.muc_weight = muc_weight
        self.b3 = B3Evaluator()
        self.muc = MUCEvaluator()

    def update(self, gold_clusters, clusters, mention_to_gold, mention_to_system):
        self.b3.update(gold_clusters, clusters, mention_to_gold, mention_to_system)
        self.muc.update(gold_clusters, clusters, mention_to_gold, mention_to_system)

    def get_f1(self):
        return self.muc_weight * self.muc.get_f1() + (1 - self.muc_weight) * self.b3.get_f1()

    def report(self):
        return {'muc': self.muc.report(), 'bcub': self.b3.report(), 'combined-F-1': self.get_f1()}


def get_combined_f1(muc_weight, gold_clusters, clusters, mention_to_gold, mention_to_system):
    evaluator = CombinedEvaluator(muc_weight)
    evaluator.update(gold_clusters, clusters, mention_to_gold, mention_to_system)
    return evaluator.get_f1()
