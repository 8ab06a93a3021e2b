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


from collections import namedtuple

# features of taking an action and the regret of taking it (0 for the best action)
CandidateAction = namedtuple('CandidateAction', ['features', 'cost'])


def best_action(classifier, actions):
    """action of the (merge, no merge) pair that the classifier prefers"""
    first, second = actions
    if classifier.weight_feature_product(first.features) > classifier.weight_feature_product(second.features):
        return first
    return second


def learn_from_actions(classifier, actions):
    """Updates the classifier towards the better action of the pair.

    The step is taken on the difference of the better and the worse action
    features, weighted by the regret of the worse action.
    """
    good_action, bad_action = actions
    if bad_action.cost == 0:
        good_action, bad_action = bad_action, good_action
    features = dict(good_action.features)
    for name, value in bad_action.features.items():
        features[name] = features.get(name, 0.0) - value
    classifier.learn(features, 0, bad_action.cost)
