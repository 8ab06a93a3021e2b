import argparse
import unittest

from searncoref.clustering import config
from searncoref.errors import ConfigurationError


class TestConfig(unittest.TestCase):

    def test_defaults(self):
        opt = config.get_opt()
        self.assertTrue(opt['use_ranking'])
        self.assertFalse(opt['exact_loss'])
        self.assertEqual(opt['muc_weight'], 0.25)
        self.assertEqual(opt['expert_decay'], 0.0)
        self.assertEqual(opt['learning_rate'], 0.05)
        self.assertEqual(opt['buffer_size_multiplier'], 20)
        self.assertEqual(opt['retrain_iterations'], 100)
        self.assertEqual(opt['num_epochs'], 15)
        self.assertEqual(opt['min_pairs'], 10)
        self.assertEqual(opt['min_pairwise_score'], 0.15)
        self.assertEqual(opt['early_stop_threshold'], 1000)
        self.assertEqual(opt['early_stop_val'], 7500.0)

    def test_overrides(self):
        opt = config.get_opt(muc_weight=0.5, num_epochs=3)
        self.assertEqual(opt['muc_weight'], 0.5)
        self.assertEqual(opt['num_epochs'], 3)

    def test_command_line(self):
        parser = argparse.ArgumentParser()
        config.add_cmdline_args(parser)
        opt = vars(parser.parse_args(['--exact_loss', 'true', '--min_pairs', '5']))
        self.assertTrue(opt['exact_loss'])
        self.assertEqual(opt['min_pairs'], 5)

    def test_unknown_option(self):
        with self.assertRaises(ConfigurationError):
            config.get_opt(mucweight=0.5)

    def test_invalid_values(self):
        for kwargs in [dict(muc_weight=1.5), dict(expert_decay=-0.1), dict(num_epochs=-1),
                       dict(learning_rate=0), dict(eval_frequency=0),
                       dict(use_classification=False, use_ranking=False)]:
            with self.assertRaises(ConfigurationError):
                config.get_opt(**kwargs)

    def test_configuration_error_is_value_error(self):
        with self.assertRaises(ValueError):
            config.get_opt(min_pairs=-2)

    def test_describe(self):
        description = config.describe(config.get_opt())
        self.assertEqual(description['muc_weight'], '0.25')
        self.assertEqual(description['use_ranking'], 'True')
        self.assertTrue(all(isinstance(v, str) for v in description.values()))


if __name__ == '__main__':
    unittest.main()
