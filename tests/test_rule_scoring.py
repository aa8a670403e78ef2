from auditguard.services import rule_scoring_service
from auditguard.services.report_service import SECTION_KEYS


def test_empty_text_scores_zero():
    result = rule_scoring_service.score_comprehensive_rule_based('', 'BLSA60000001')
    assert all(result[key] == 0 for key in SECTION_KEYS)
    assert result['rationale'].startswith('Rule-based scoring completed. Total: 0/100.')
    assert result['businessMatches']['businessName'] is False


def test_banking_section():
    text = "Primary bank: HDFC\nQR code displayed at counter\nEMI routed through HDFC account"
    result = rule_scoring_service.score_comprehensive_rule_based(text, 'BLSA60000002')
    banking = result['bankingMatches']
    assert banking['primaryBankerName'] is True
    assert banking['qrCodeSpotted'] is True
    assert banking['emisRoutedBank'] is True
    assert banking['bankingTenure'] is False
    assert result['banking'] == 9
    # "emi" also counts as an existing loan mention
    assert result['existingDebt'] == 2


def test_sections_are_capped():
    text = "\n".join([
        'Education: Graduate', 'Spouse: Lata', 'Spouse education: B.Com', 'spouse works as teacher',
        'two children', 'child educated at school', 'School: DPS', 'residing since 2010',
        'monthly rent 8000', 'rented house',
    ])
    result = rule_scoring_service.score_comprehensive_rule_based(text, 'BLSA60000003')
    assert result['personal'] <= 15
    total = sum(result[key] for key in SECTION_KEYS)
    assert total <= 100


def test_detect_business_type():
    assert rule_scoring_service.detect_business_type('manufacturing unit') == 'manufacturing'
    assert rule_scoring_service.detect_business_type('wholesale dealer') == 'trading'
    assert rule_scoring_service.detect_business_type('') is None


def test_extract_number_strips_separators():
    patterns = rule_scoring_service.BUSINESS_PATTERNS['turnover']
    assert rule_scoring_service.extract_number('turnover: rs. 1,50,000', patterns) == 150000


def test_business_bonus_only_for_detected_type():
    mfg_text = 'manufacturing unit\nraw material sourced locally\nproduct range and variety'
    result = rule_scoring_service.score_comprehensive_rule_based(mfg_text, 'BLSA60000004')
    assert result['businessMatches']['mfgRawMaterialSourcingStorage'] is True
    assert result['businessMatches']['tradingProductRangeInventoryMovement'] is True
    # only the manufacturing item counts
    assert result['business'] == 1

    trading_text = 'wholesale dealer\nproduct range and variety\nraw material sourcing'
    result = rule_scoring_service.score_comprehensive_rule_based(trading_text, 'BLSA60000005')
    assert result['businessMatches']['mfgRawMaterialSourcingStorage'] is True
    assert result['business'] == 2


def test_business_with_full_bonus_capped_at_thirty():
    text = '\n'.join([
        'Business name: Sri Tools', 'Nature of business: manufacturing of hand tools',
        '8 years in business', 'GST registration available', 'expansion plan for next year',
        '12 people work here', 'turnover: Rs. 5,00,000', 'customers across the district',
        'active operation observed', 'monthly income: 80000', 'peak season in winter',
        'factory premises', 'raw material procurement', 'process flow documented',
        'capacity utilization 70%', 'machines maintained', 'inventory register', 'quality control desk',
        'product range and variety',
    ])
    result = rule_scoring_service.score_comprehensive_rule_based(text, 'BLSA60000006')
    assert all(result['businessMatches'][key] for key in rule_scoring_service.RUBRIC['businessCore'])
    assert all(result['businessMatches'][key] for key in rule_scoring_service.RUBRIC['manufacturing'])
    assert result['business'] == 30
