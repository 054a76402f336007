# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import unittest
from unittest import mock

import pandas as pd

from geodap.core.timetiles import get_offset
from geodap.core.timetiles import get_period_anchor
from geodap.core.timetiles import get_period_tiles
from geodap.core.timewindow import TimeWindow

T = pd.Timestamp


class PeriodAnchorTest(unittest.TestCase):
    def test_month_start(self):
        offset = get_offset("MS")
        self.assertEqual(T("2017-08-01"), get_period_anchor(T("2017-08-17T12:00"), offset))
        self.assertEqual(T("2017-08-01"), get_period_anchor(T("2017-08-01"), offset))

    def test_year_start(self):
        offset = get_offset("YS")
        self.assertEqual(T("2017-01-01"), get_period_anchor(T("2017-08-17"), offset))

    def test_day(self):
        offset = get_offset("D")
        self.assertEqual(T("2017-08-17"), get_period_anchor(T("2017-08-17T06:30"), offset))

    def test_invalid_period(self):
        with self.assertRaises(ValueError) as cm:
            get_offset("fortnight")
        self.assertIn("invalid tile period 'fortnight'", f"{cm.exception}")


class PeriodTilesTest(unittest.TestCase):
    def test_monthly(self):
        tiles = get_period_tiles(
            TimeWindow("1979-01-01", None),
            "MS",
            TimeWindow("2017-08-17", "2017-09-03"),
        )
        self.assertEqual(
            [
                (463, T("2017-08-01"), T("2017-09-01")),
                (464, T("2017-09-01"), T("2017-10-01")),
            ],
            tiles,
        )

    def test_window_end_is_exclusive(self):
        tiles = get_period_tiles(
            TimeWindow("2017-01-01", None),
            "MS",
            TimeWindow("2017-08-17", "2017-09-01"),
        )
        self.assertEqual([7], [index for index, _, _ in tiles])

    def test_whole_coverage(self):
        tiles = get_period_tiles(TimeWindow("2000-01-01", "2003-01-01"), "YS")
        self.assertEqual(
            [
                (0, T("2000-01-01"), T("2001-01-01")),
                (1, T("2001-01-01"), T("2002-01-01")),
                (2, T("2002-01-01"), T("2003-01-01")),
            ],
            tiles,
        )

    def test_coverage_start_between_anchors(self):
        tiles = get_period_tiles(TimeWindow("2000-01-15", "2000-03-01"), "MS")
        self.assertEqual(
            [(0, T("2000-01-01"), T("2000-02-01")), (1, T("2000-02-01"), T("2000-03-01"))],
            tiles,
        )

    def test_daily(self):
        tiles = get_period_tiles(TimeWindow("2017-08-17T06:00", "2017-08-19"), "D")
        self.assertEqual(
            [
                (0, T("2017-08-17"), T("2017-08-18")),
                (1, T("2017-08-18"), T("2017-08-19")),
            ],
            tiles,
        )

    def test_window_outside_coverage(self):
        self.assertEqual(
            [],
            get_period_tiles(
                TimeWindow("2000-01-01", "2003-01-01"),
                "YS",
                TimeWindow("2010-01-01", "2011-01-01"),
            ),
        )

    def test_open_end_is_enumerated_up_to_now(self):
        with mock.patch(
            "geodap.core.timetiles.now", return_value=T("2022-06-01")
        ):
            tiles = get_period_tiles(TimeWindow("2020-01-01", None), "YS")
        self.assertEqual([0, 1, 2], [index for index, _, _ in tiles])

    def test_coverage_without_start(self):
        with self.assertRaises(ValueError):
            get_period_tiles(TimeWindow(None, "2020-01-01"), "YS")
