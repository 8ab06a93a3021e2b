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


import argparse

from ..errors import ConfigurationError


def str2bool(value):
    if isinstance(value, bool):
        return value
    if value.lower() in ('yes', 'true', 't', 'y', '1'):
        return True
    if value.lower() in ('no', 'false', 'f', 'n', '0'):
        return False
    raise argparse.ArgumentTypeError('Boolean value expected.')


def add_cmdline_args(parser):
    """
    Add clusterer parameters.
    Args:
        parser: argparse parser

    Returns:
        nothing
    """
    agent = parser.add_argument_group('Clusterer Arguments')

    # Which pairwise scores are used.
    agent.add_argument('--use_classification', type=str2bool, default=True)
    agent.add_argument('--use_ranking', type=str2bool, default=True,
                       help='order mention pairs by ranking scores instead of classification scores')
    agent.add_argument('--left_to_right', type=str2bool, default=False,
                       help='order mention pairs by position in document instead of score')

    # Computation limits.
    agent.add_argument('--min_pairs', type=int, default=10)
    agent.add_argument('--min_pairwise_score', type=float, default=0.15)
    agent.add_argument('--early_stop_threshold', type=int, default=1000)
    agent.add_argument('--early_stop_val', type=float, default=1500 / 0.2)
    agent.add_argument('--max_docs', type=int, default=1000)

    # Learning hyperparameters.
    agent.add_argument('--exact_loss', type=str2bool, default=False,
                       help='roll out the policy to the end of the document when computing costs')
    agent.add_argument('--muc_weight', type=float, default=0.25)
    agent.add_argument('--expert_decay', type=float, default=0.0)
    agent.add_argument('--learning_rate', type=float, default=0.05)
    agent.add_argument('--buffer_size_multiplier', type=int, default=20)
    agent.add_argument('--retrain_iterations', type=int, default=100)
    agent.add_argument('--num_epochs', type=int, default=15)

    # Other.
    agent.add_argument('--eval_frequency', type=int, default=1)
    agent.add_argument('--checkpoint_frequency', type=int, default=10)
    agent.add_argument('--random_seed', type=int, default=0)
    agent.add_argument('--models_path', type=str, default='clustering_models')
    agent.add_argument('--verbose', type=str2bool, default=False)


def get_opt(**overrides):
    """Default options updated with overrides; raises ConfigurationError on bad values"""
    parser = argparse.ArgumentParser(add_help=False)
    add_cmdline_args(parser)
    opt = vars(parser.parse_args([]))
    unknown = sorted(set(overrides) - set(opt))
    if unknown:
        raise ConfigurationError('Unknown clusterer options: {}'.format(', '.join(unknown)))
    opt.update(overrides)
    validate_opt(opt)
    return opt


def validate_opt(opt):
    for name in ['min_pairs', 'early_stop_threshold', 'buffer_size_multiplier',
                 'retrain_iterations', 'num_epochs']:
        if opt[name] < 0:
            raise ConfigurationError('{} must be non-negative, got {}'.format(name, opt[name]))
    for name in ['eval_frequency', 'checkpoint_frequency']:
        if opt[name] <= 0:
            raise ConfigurationError('{} must be positive, got {}'.format(name, opt[name]))
    for name in ['muc_weight', 'expert_decay']:
        if not 0 <= opt[name] <= 1:
            raise ConfigurationError('{} must be in [0, 1], got {}'.format(name, opt[name]))
    if opt['learning_rate'] <= 0:
        raise ConfigurationError('learning_rate must be positive, got {}'.format(opt['learning_rate']))
    if not opt['use_classification'] and not opt['use_ranking']:
        raise ConfigurationError('at least one of use_classification and use_ranking is required')


def describe(opt):
    """option name -> printable value, written to the 'config' file of a model"""
    return {name: str(value) for name, value in sorted(opt.items())}
