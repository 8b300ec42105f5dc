import numpy as np
import pytest

from intent_engine.infrastructure.ai.intent.text_processor import (
    NUMBER_TOKEN,
    FeatureVector,
    TextProcessor,
    Vocabulary,
)
from intent_engine.utils.exceptions import ValidationException


@pytest.fixture
def processor():
    return TextProcessor(max_vocab_size=10000, min_word_freq=2)


class TestNormalization:
    def test_normalize_lowercases_and_strips_punctuation(self, processor):
        assert processor.normalize("Hello, World!  How's it going?") == "hello world how s it going"

    def test_normalize_replaces_digit_runs(self, processor):
        assert processor.normalize("I ate 3 eggs and 250g rice") == f"i ate {NUMBER_TOKEN} eggs and {NUMBER_TOKEN}g rice"

    def test_normalize_collapses_whitespace(self, processor):
        assert processor.normalize("  lots\tof \n space  ") == "lots of space"

    def test_filter_tokens_drops_short_and_stop_words(self, processor):
        tokens = processor.tokenize("how much protein do i need for my diet")
        assert processor.filter_tokens(tokens) == ["much", "protein", "need", "diet"]


class TestStemming:
    @pytest.mark.parametrize("word, stem", [
        ("eating", "eat"),
        ("tested", "test"),
        ("faster", "fast"),
        ("quickly", "quick"),
        ("station", "stat"),
        ("happiness", "happi"),
        ("sing", "sing"),
        ("bed", "bed"),
        ("protein", "protein"),
    ])
    def test_stem(self, processor, word, stem):
        assert processor.stem(word) == stem


class TestVocabulary:
    def test_min_frequency_and_ranking(self, processor):
        texts = ["protein shake", "protein bars", "calories count", "protein calories", "shake"]
        vocabulary = processor.build_vocabulary(texts)

        assert vocabulary.words() == ["protein", "shake", "calories"]
        assert "bars" not in vocabulary
        assert len(vocabulary) == 3

    def test_ties_keep_first_seen_order(self, processor):
        vocabulary = processor.build_vocabulary(["zinc iron", "iron zinc"])
        assert vocabulary.words() == ["zinc", "iron"]

    def test_max_size_truncates(self):
        processor = TextProcessor(max_vocab_size=2, min_word_freq=1)
        processor.build_vocabulary(["apple apple apple banana banana cherry"])
        assert processor.get_vocabulary() == ["apple", "banana"]

    def test_same_corpus_same_version(self, processor):
        texts = ["protein powder", "protein bars", "powder mix"]
        first = processor.build_vocabulary(texts)
        second = processor.spawn().build_vocabulary(texts)
        assert first.version == second.version
        assert first.to_dict() == second.to_dict()

    def test_different_corpus_different_version(self, processor):
        first = processor.build_vocabulary(["protein protein"])
        second = processor.build_vocabulary(["fiber fiber"])
        assert first.version != second.version

    def test_from_mapping_rejects_sparse_indices(self):
        with pytest.raises(ValidationException):
            Vocabulary.from_mapping({"protein": 0, "fiber": 2})

    def test_import_round_trip(self, processor):
        processor.build_vocabulary(["protein fiber", "protein fiber"])
        restored = processor.spawn()
        restored.import_vocabulary(processor.export_vocabulary())
        assert restored.vocabulary_version == processor.vocabulary_version


class TestFeatureVectors:
    def test_vector_is_l1_normalized(self, processor):
        processor.build_vocabulary(["protein fiber", "protein fiber"])
        features = processor.process_text("protein protein fiber and unknownword").features

        assert isinstance(features, FeatureVector)
        assert features.vocabulary_version == processor.vocabulary_version
        assert np.isclose(features.values.sum(), 1.0)
        assert np.isclose(features.values[processor.vocabulary.get("protein")], 2 / 3)

    def test_no_matching_stems_gives_zero_vector(self, processor):
        processor.build_vocabulary(["protein fiber", "protein fiber"])
        features = processor.process_text("hello there").features
        assert len(features) == 2
        assert not features.values.any()

    def test_texts_to_matrix_shape(self, processor):
        processor.build_vocabulary(["protein fiber", "protein fiber"])
        matrix = processor.texts_to_matrix(["protein", "fiber", "nothing"])
        assert matrix.shape == (3, 2)

    def test_process_text_collects_entities(self, processor):
        processed = processor.process_text("Best PROTEIN breakfast for weight loss")
        assert processed.entities == ["protein", "weight", "breakfast", "loss"]
        assert processed.tokens == ["best", "protein", "breakfast", "weight", "loss"]


class TestSimilarity:
    def test_identical_texts(self, processor):
        processor.build_vocabulary(["protein fiber", "protein fiber"])
        assert processor.calculate_similarity("protein fiber", "fiber protein") == pytest.approx(1.0)

    def test_empty_vector_gives_zero(self, processor):
        processor.build_vocabulary(["protein fiber", "protein fiber"])
        assert processor.calculate_similarity("protein", "hello") == 0.0
