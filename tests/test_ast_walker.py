import unittest

from ast_walker import _initializer_follows, _is_slice_of, _macro_arguments, _wrapping_parens


def toks(text):
    return text.split()


class InitializerTokensTest(unittest.TestCase):
    def test_plain_forms(self):
        self.assertTrue(_initializer_follows(toks("= 1")))
        self.assertTrue(_initializer_follows(toks("( 5 )")))
        self.assertTrue(_initializer_follows(toks("{ }")))
        self.assertFalse(_initializer_follows([]))

    def test_declarator_suffixes_before_the_initializer(self):
        # int (*fp)() = next;
        self.assertTrue(_initializer_follows(toks(") ( ) = next")))
        # int (x) = 1;
        self.assertTrue(_initializer_follows(toks(") = 1")))
        # int x [[maybe_unused]] = 1;
        self.assertTrue(_initializer_follows(toks("[ [ maybe_unused ] ] = 1")))
        # int a[3] = {1, 2, 3};
        self.assertTrue(_initializer_follows(toks("[ 3 ] = { 1 , 2 , 3 }")))

    def test_declarators_without_initializer(self):
        # int (*fp)(int);
        self.assertFalse(_initializer_follows(toks(") ( int )")))
        self.assertFalse(_initializer_follows(toks("[ 3 ]")))
        self.assertFalse(_initializer_follows(toks(", y = 2")))
        self.assertFalse(_initializer_follows(toks(";")))


class MacroTokensTest(unittest.TestCase):
    def test_single_argument(self):
        self.assertEqual(_macro_arguments(toks("assert ( x = 2 )")), [toks("x = 2")])

    def test_nested_commas_stay_in_one_argument(self):
        args = _macro_arguments(toks("assert ( f ( a , b ) == 1 )"))
        self.assertEqual(len(args), 1)

    def test_top_level_commas_split_arguments(self):
        self.assertEqual(len(_macro_arguments(toks("CHECK_EQ ( a , b )"))), 2)

    def test_object_like_or_unterminated(self):
        self.assertIsNone(_macro_arguments(toks("NDEBUG")))
        self.assertIsNone(_macro_arguments(toks("assert ( x = 2")))

    def test_wrapping_parens(self):
        self.assertEqual(_wrapping_parens(toks("x = 2")), 0)
        self.assertEqual(_wrapping_parens(toks("( x = 2 )")), 1)
        self.assertEqual(_wrapping_parens(toks("( ( x = 2 ) )")), 2)
        self.assertEqual(_wrapping_parens(toks("( a ) = ( b )")), 0)
        self.assertEqual(_wrapping_parens(toks("! ( x = 2 )")), 0)

    def test_slice_of_argument(self):
        argument = toks("( ( x = 1 ) ) ? a : b")
        self.assertTrue(_is_slice_of(toks("( ( x = 1 ) ) ? a : b"), argument))
        self.assertTrue(_is_slice_of(toks("a : b"), argument))
        self.assertFalse(_is_slice_of(toks("assert ( x = 1 )"), argument))
        self.assertFalse(_is_slice_of(toks("x"), []))


if __name__ == "__main__":
    unittest.main()
