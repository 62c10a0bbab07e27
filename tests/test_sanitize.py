"""Tests for path segment sanitizing."""

from hubsync.storage.sanitize import MAX_SEGMENT_LENGTH, lookup_key, sanitize_segment


class TestSanitizeSegment:
    def test_plain_name_unchanged(self):
        assert sanitize_segment("Ideas") == "Ideas"

    def test_reserved_characters(self):
        assert sanitize_segment('a<b>c:d"e/f\\g|h?i*j') == "a_b_c_d_e_f_g_h_i_j"

    def test_whitespace_runs_collapse(self):
        assert sanitize_segment("Reading   List\tNow") == "Reading_List_Now"

    def test_length_capped(self):
        assert len(sanitize_segment("x" * 250)) == MAX_SEGMENT_LENGTH

    def test_deterministic(self):
        name = "Мои заметки: 2024/05"
        assert sanitize_segment(name) == sanitize_segment(name)
        assert sanitize_segment(name) == "Мои_заметки__2024_05"

    def test_empty_and_dot_names_fall_back(self):
        assert sanitize_segment("") == "untitled"
        assert sanitize_segment("..") == "untitled"


class TestLookupKey:
    def test_case_and_punctuation_folded(self):
        assert lookup_key("Reading List") == lookup_key("reading_list")
        assert lookup_key("Work / Notes") == lookup_key("work-notes")

    def test_distinct_names_stay_distinct(self):
        assert lookup_key("Work") != lookup_key("Home")
