from policai_pipeline.pipeline.research import deduplicate_findings, normalize_title


def test_normalize_title_drops_case_and_punctuation():
    assert normalize_title("AI Ethics Framework") == "aiethicsframework"
    assert normalize_title("A.I. ethics -- framework!") == "aiethicsframework"
    assert normalize_title("") == ""


def test_highest_score_wins(make_finding):
    """
    WHY: Two sources often describe the same policy; only the strongest finding should survive.
    HOW: Same normalized title with scores 0.6 and 0.9.
    EXPECTED: One finding, the 0.9 one.
    """
    low = make_finding(title="AI Ethics Framework", relevance_score=0.6)
    high = make_finding(title="ai ethics framework.", relevance_score=0.9)

    result = deduplicate_findings([low, high])
    assert [f.id for f in result] == [high.id]


def test_tie_keeps_first_seen(make_finding):
    first = make_finding(title="Privacy Act Review", relevance_score=0.7)
    second = make_finding(title="Privacy act review", relevance_score=0.7)

    assert deduplicate_findings([first, second]) == [first]


def test_output_keeps_first_seen_title_order(make_finding):
    a = make_finding(title="Alpha", relevance_score=0.5)
    b = make_finding(title="Beta", relevance_score=0.8)
    a2 = make_finding(title="ALPHA", relevance_score=0.95)
    c = make_finding(title="Gamma", relevance_score=0.6)

    result = deduplicate_findings([a, b, a2, c])
    assert [f.id for f in result] == [a2.id, b.id, c.id]


def test_empty_input():
    assert deduplicate_findings([]) == []
