import json
from types import SimpleNamespace

import pytest

from auditguard.services import ai_service


class FakeCompletions:
    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies(kwargs) if callable(self.replies) else self.replies
        if isinstance(reply, Exception):
            raise reply
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(replies):
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(replies)))


BUSINESS_CORE = {key: True for key in ai_service.WEIGHTS['business']}


def parsed_findings():
    return {
        'businessType': 'trading',
        'loanType': 'mortgage',
        'maritalStatus': 'unmarried',
        'personal': {'selfEducation': True, 'residenceVintage': True, 'residenceOwnedOrRented': True},
        'business': {**BUSINESS_CORE, 'tradingPurchaseCycle': True},
        'banking': {},
        'networth': {'propertiesOwned': True, 'otherInvestments': True, 'noVehiclesExplicitlyMentioned': True},
        'existingDebt': {'hasExistingLoans': True},
        'endUse': {'mortgageFundsUse': True, 'agreementValueAvailable': True},
        'referenceChecks': {'personalRefNeighbours': True},
        'summary': 'Trader with a single outlet.',
    }


def test_compute_comprehensive_scores():
    result = ai_service.compute_comprehensive_scores(parsed_findings(), 'BLSA70000001', 120)
    # unmarried: 4.5 of 6 scaled to 15
    assert result['personal'] == 11.25
    assert result['business'] == 28
    assert result['banking'] == 0
    # vehicles excluded: 5 of 10 possible
    assert result['networth'] == 5
    assert result['existingDebt'] == 2
    assert result['endUse'] == 5
    assert result['referenceChecks'] == 4
    assert 'Unmarried applicant' in result['rationale']
    assert result['businessMatches']['promoterExperienceQualifications'] is True
    assert result['businessMatches']['tradingPurchaseSalesCycle'] is True
    assert result['endUseMatches']['advancePaidCashOrBankAmount'] is False


def test_unknown_loan_type_takes_better_end_use():
    findings = parsed_findings()
    findings['loanType'] = 'unknown'
    findings['endUse'] = {'agreementValueAvailable': True, 'willOccupyPostPurchase': True}
    result = ai_service.compute_comprehensive_scores(findings, 'BLSA70000002')
    assert result['endUse'] == 7


def test_business_capped_at_thirty():
    findings = parsed_findings()
    findings['business'] = {**BUSINESS_CORE, 'tradingProductRange': True,
                            'tradingPurchaseCycle': True, 'tradingWarehouse': True}
    result = ai_service.compute_comprehensive_scores(findings, 'BLSA70000003')
    assert result['business'] == 30


def test_score_with_ai_requires_key(app):
    with pytest.raises(ai_service.AIConfigurationError):
        ai_service.score_comprehensive_with_ai('text', 'BLSA70000004')


def test_score_with_ai_parses_reply(app, monkeypatch):
    reply = 'Here is the analysis:\n' + json.dumps(parsed_findings())
    client = fake_client(reply)
    monkeypatch.setattr(ai_service, 'get_client', lambda: client)

    result = ai_service.score_comprehensive_with_ai('x' * 13000, 'BLSA70000005')
    assert result['business'] == 28
    call = client.chat.completions.calls[0]
    assert call['temperature'] == 0
    assert '...[Report truncated]...' in call['messages'][0]['content']


def test_score_with_ai_failure_returns_zeroes(app, monkeypatch):
    monkeypatch.setattr(ai_service, 'get_client', lambda: fake_client(RuntimeError('rate limited')))
    result = ai_service.score_comprehensive_with_ai('text', 'BLSA70000006')
    assert result['aiError'] == 'rate limited'
    assert result['personal'] == 0 and result['business'] == 0
    assert result['rationale'] == 'AI scoring failed: rate limited'


def test_generate_draft_without_ai(app):
    draft = ai_service.generate_draft('BLSA70000007', photos=[(b'img', 'image/jpeg')])
    assert draft['leadId'] == 'BLSA70000007'
    assert draft['recommendation'] == 'Refer'


def test_generate_draft_with_ai(app, monkeypatch):
    app.config['AI_API_KEY'] = 'test-key'

    def replies(kwargs):
        if kwargs['model'] == app.config['AI_VISION_MODEL']:
            return 'Shop front with a signboard'
        return '```json\n{"leadId": "BLSA70000008", "recommendation": "Positive"}\n```'

    client = fake_client(replies)
    monkeypatch.setattr(ai_service, 'get_client', lambda: client)

    draft = ai_service.generate_draft('BLSA70000008', photos=[(b'img', 'image/jpeg')])
    assert draft == {'leadId': 'BLSA70000008', 'recommendation': 'Positive'}
    prompt = client.chat.completions.calls[-1]['messages'][0]['content']
    assert 'Photo 1: Shop front with a signboard' in prompt
    assert 'No audio recording provided' in prompt


def test_generate_draft_unparseable_reply(app, monkeypatch):
    app.config['AI_API_KEY'] = 'test-key'
    monkeypatch.setattr(ai_service, 'get_client', lambda: fake_client('I cannot help with that'))
    draft = ai_service.generate_draft('BLSA70000009')
    assert draft['recommendation'] == 'Refer'


def test_ai_status(app):
    status = ai_service.ai_status()
    assert status['configured'] is False
    assert status['baseUrl'] == 'https://openrouter.ai/api/v1'


def test_analyze_business(app, monkeypatch):
    reply = json.dumps({
        'summary': 'Kirana store operating for 8 years.',
        'strengths': ['Busy counter'],
        'concerns': [],
        'recommendation': 'POSITIVE - stable footfall',
        'reportDraft': 'The applicant runs a kirana store.',
    })
    client = fake_client(reply)
    monkeypatch.setattr(ai_service, 'get_client', lambda: client)

    analysis = ai_service.analyze_business('Sri Kirana', 'Trading', observations=['Stock well arranged'],
                                           photo_evidence=['Signboard'])
    assert analysis['recommendation'] == 'POSITIVE - stable footfall'
    call = client.chat.completions.calls[0]
    assert call['model'] == app.config['AI_SCORING_MODEL']
    prompt = call['messages'][0]['content']
    assert '- Location: Not specified' in prompt
    assert '1. Stock well arranged' in prompt
    assert '1. Signboard' in prompt


def test_analyze_business_unparseable_reply(app, monkeypatch):
    monkeypatch.setattr(ai_service, 'get_client', lambda: fake_client('Looks fine to me'))
    analysis = ai_service.analyze_business('Sri Kirana', 'Trading')
    assert analysis['recommendation'] == 'POSITIVE - Business appears legitimate'
    assert analysis['reportDraft'] == 'Looks fine to me'


def test_analyze_business_requires_key(app):
    with pytest.raises(ai_service.AIConfigurationError):
        ai_service.analyze_business('Sri Kirana', 'Trading')
