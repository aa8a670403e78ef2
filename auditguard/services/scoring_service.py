"""Deterministic scoring of LIP draft reports.

A draft (as produced by the draft generator or edited by an associate) is
first normalised into an applicant schema and then scored against the
comprehensive rubric: personal 15, business 30, banking 15, networth 10,
existing debt 10, end use 10 and reference checks 10.
"""
import logging
import re

from auditguard.utils import round_half_up

logger = logging.getLogger(__name__)

WEIGHTS = {
    'personal': {'max': 15, 'item': 1.5},
    'business': {'max': 30, 'item': 2},
    'banking': {'max': 15, 'item': 3},
    'networth': {'max': 10, 'item': 2.5},
    'debt': {'max': 10, 'item': 2.5},
    'endUse': {'max': 10, 'purposeOfLoan': 3, 'agreementValue': 3, 'willOccupy': 4},
    'references': {'max': 10, 'personalCheck': 4, 'businessCheck': 3, 'invoiceVerified': 3},
}

MISSING_MARKERS = ('N/A', 'Not Available', 'NA')

TYPE_SPECIFIC_BUSINESS_KEYS = (
    'mfgRawMaterialSourcingStorage', 'mfgProcessFlow', 'mfgCapacityVsUtilization',
    'mfgMachineryMakeAutomationMaintenance', 'mfgInventoryFifoAging', 'mfgQualityControl',
    'tradingProductRangeInventoryMovement', 'tradingPurchaseSalesCycle', 'tradingWarehouseStockSeen',
    'svcDocumentationOfDelivery', 'svcTechnologySystems', 'svcClientListContractsRevenueModel',
    'svcContractBasedOrWalkin',
)


def _r2(value):
    return round(value * 100) / 100


def parse_number(val):
    if not val or val in ('N/A', 'Not Available'):
        return 0
    if isinstance(val, bool):
        return 0
    if isinstance(val, (int, float)):
        return val
    cleaned = re.sub(r'[^\d.-]', '', str(val))
    match = re.match(r'-?(\d+\.?\d*|\.\d+)', cleaned)
    if not match:
        return 0
    return float(match.group(0))


def parse_existing_loans(val):
    if val is True:
        return True
    if val is False:
        return False
    if not val or val in ('N/A', 'Not Available', 'unknown'):
        return None
    lower = str(val).lower().strip()
    if lower in ('no', 'none', 'nil', 'false'):
        return False
    if lower in ('yes', 'true'):
        return True
    return None


def parse_repayment_track(val):
    if not val or val in ('N/A', 'Not Available', 'unknown'):
        return ''
    lower = str(val).lower().strip()
    if 'poor' in lower or 'bad' in lower or 'irregular' in lower:
        return 'poor'
    if 'good' in lower or 'excellent' in lower or 'regular' in lower:
        return 'good'
    return ''


def is_owned(text):
    lower = str(text or '').lower()
    return 'own' in lower or 'self' in lower


def has_value(val):
    if not val or val in MISSING_MARKERS:
        return False
    return str(val).strip() != ''


def _section(draft, key):
    section = draft.get(key)
    return section if isinstance(section, dict) else {}


def map_draft_to_applicant(draft):
    pa = _section(draft, 'primaryApplicant')
    pers = _section(draft, 'personalDetails')
    bus = _section(draft, 'businessDetails')
    prop = _section(draft, 'propertyDetails')
    end = _section(draft, 'endUseDetails')
    ref = _section(draft, 'referenceChecks')
    bank = _section(draft, 'bankingDetails')
    debt = _section(draft, 'debtDetails')

    ref1 = ref.get('reference1') if isinstance(ref.get('reference1'), dict) else {}
    ref2 = ref.get('reference2') if isinstance(ref.get('reference2'), dict) else {}
    business_setup = bus.get('businessSetup')
    end_use = end.get('endUse')

    return {
        'personal': {
            'residenceVintage': pers.get('residenceVintage') or '',
            'residenceOwned': is_owned(pers.get('residenceType')),
            'spouseName': pa.get('spouseName') or pers.get('spouseName'),
            'kidsCount': parse_number(pers.get('dependents')),
            'selfEducation': pers.get('selfEducation'),
            'spouseEducation': pers.get('spouseEducation'),
            'spouseEmployment': pers.get('spouseEmployment'),
            'kidsEducation': pers.get('kidsEducation'),
            'kidsSchool': pers.get('kidsSchool'),
            'monthlyRent': parse_number(pers.get('monthlyRent')),
        },
        'business': {
            'name': bus.get('businessName') or '',
            'nature': bus.get('majorServices') or '',
            'monthlyIncome': parse_number(bus.get('netMonthlyIncome')),
            'licensesVerified': has_value(business_setup) and 'license' in str(business_setup).lower(),
            'businessVintage': parse_number(bus.get('businessVintageMonths')),
            'employeesVerified': has_value(bus.get('employeeCount')),
            'monthlyTurnover': parse_number(bus.get('monthlyTurnover')),
            'activityObserved': has_value(bus.get('businessProfile')),
            'infrastructureAdequate': has_value(bus.get('surroundingArea')),
            'seasonalityMentioned': has_value(bus.get('seasonality')),
            'clientListAvailable': has_value(bus.get('clientListConcentrationRisk')) or has_value(bus.get('majorClients')),
            'sourceOfBusiness': has_value(bus.get('sourceOfBusiness')),
            'strategicVision': has_value(bus.get('strategicVision')) or has_value(bus.get('growthPlans')),
            'promoterExperience': has_value(bus.get('promoterExperience')) or has_value(bus.get('yearsOfExperience')),
        },
        'networth': {
            'propertiesOwned': parse_number(prop.get('propertiesOwned')) or (1 if has_value(prop.get('propertyType')) else 0),
            'vehiclesOwned': parse_number(prop.get('vehiclesOwned')),
            'otherInvestments': has_value(prop.get('otherInvestments')),
            'businessPlaceOwned': is_owned(business_setup),
        },
        'debt': {
            'existingLoans': parse_existing_loans(draft.get('existingLoans') or debt.get('existingLoans')),
            'repaymentTrack': parse_repayment_track(draft.get('repaymentHistory') or debt.get('repaymentHistory')),
            'loanListAvailable': has_value(draft.get('loanList')) or has_value(debt.get('loanList')),
            'canServiceNewLoan': has_value(bus.get('comfortableEmi')),
        },
        'endUse': {
            'purpose': end.get('purposeOfLoan') or '',
            'agreementValue': parse_number(end.get('agreementValue')),
            'advancePaid': parse_number(end.get('advancePaid')),
            'willOccupy': has_value(end_use) and 'self' in str(end_use).lower(),
            'mortgageFundsUse': end_use,
        },
        'references': {
            'personalCheck': has_value(ref1.get('feedback')) and ref1.get('feedback') != 'Pending',
            'businessCheck': has_value(ref2.get('feedback')) and ref2.get('feedback') != 'Pending',
            'invoiceVerified': has_value(ref.get('invoiceVerified')),
        },
        'banking': {
            'primaryBank': bank.get('bankName') or '',
            'turnoverCreditPercent': parse_number(bank.get('turnoverCreditPercent')),
            'bankingTenure': parse_number(bank.get('bankingTenure')),
            'emisRouted': has_value(bank.get('emisRouted')),
            'qrCodeSpotted': has_value(bank.get('qrCodeSpotted')),
        },
    }


def _present(val):
    if val is None:
        return False
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        return val not in ('', 'N/A', 'Not Available')
    if isinstance(val, (int, float)):
        return val > 0
    return False


def _score_personal(personal):
    item = WEIGHTS['personal']['item']
    rented = not personal['residenceOwned']
    rent_documented = rented and _present(personal['monthlyRent'])
    matches = {
        'selfEducation': _present(personal['selfEducation']),
        'spouseName': _present(personal['spouseName']),
        'spouseEducation': _present(personal['spouseEducation']),
        'spouseEmployment': _present(personal['spouseEmployment']),
        'mentionAboutKids': (personal['kidsCount'] or 0) > 0,
        'kidsEducation': _present(personal['kidsEducation']),
        'kidsSchool': _present(personal['kidsSchool']),
        'residenceVintage': _present(personal['residenceVintage']),
        'monthlyRentIfRented': rent_documented,
        'residenceOwnedOrRented': personal['residenceOwned'] or rent_documented,
    }
    counted = ('selfEducation', 'spouseName', 'spouseEducation', 'spouseEmployment',
               'mentionAboutKids', 'kidsEducation', 'kidsSchool', 'residenceVintage')
    score = sum(item for key in counted if matches[key])
    # owned residence and documented rent are mutually exclusive
    if personal['residenceOwned'] or rent_documented:
        score += item
    if matches['residenceOwnedOrRented']:
        score += item
    return min(score, WEIGHTS['personal']['max']), matches


def _score_business(business, debt):
    item = WEIGHTS['business']['item']
    matches = {
        'businessName': _present(business['name']),
        'natureOfBusiness': _present(business['nature']),
        'existenceCurrentPlace': _present(business['businessVintage']),
        'licensesRegistrations': bool(business['licensesVerified']),
        'promoterExperienceQualifications': bool(business['promoterExperience']),
        'strategicVisionClarity': bool(business['strategicVision']),
        'employeesSeen': bool(business['employeesVerified']),
        'monthlyTurnover': _present(business['monthlyTurnover']),
        'clientListConcentrationRisk': bool(business['clientListAvailable']),
        'activityDuringVisit': bool(business['activityObserved']),
        'monthlyIncome': _present(business['monthlyIncome']) and business['monthlyIncome'] >= 50000,
        'seasonality': bool(business['seasonalityMentioned']),
        'infraSupportsTurnover': bool(business['infrastructureAdequate']),
    }
    score = sum(item for matched in matches.values() if matched)
    if business['sourceOfBusiness']:
        score += item
    # comfortable EMI is scored here, not under existing debt
    if debt['canServiceNewLoan']:
        score += item
    matches.update({key: False for key in TYPE_SPECIFIC_BUSINESS_KEYS})
    return min(score, WEIGHTS['business']['max']), matches


def _score_banking(banking):
    matches = {
        'primaryBankerName': _present(banking['primaryBank']),
        'turnoverCreditedPercent': banking['turnoverCreditPercent'] >= 50,
        'bankingTenure': _present(banking['bankingTenure']) and banking['bankingTenure'] >= 12,
        'emisRoutedBank': bool(banking['emisRouted']),
        'qrCodeSpotted': bool(banking['qrCodeSpotted']),
    }
    score = sum(WEIGHTS['banking']['item'] for matched in matches.values() if matched)
    return min(score, WEIGHTS['banking']['max']), matches


def _score_networth(networth):
    matches = {
        'propertiesOwned': networth['propertiesOwned'] > 0,
        'vehiclesOwned': networth['vehiclesOwned'] > 0,
        'otherInvestments': bool(networth['otherInvestments']),
        'businessPlaceOwned': bool(networth['businessPlaceOwned']),
    }
    score = sum(WEIGHTS['networth']['item'] for matched in matches.values() if matched)
    matches['totalNetworthAvailable'] = matches['propertiesOwned'] or matches['vehiclesOwned']
    return min(score, WEIGHTS['networth']['max']), matches


def _score_debt(debt):
    item = WEIGHTS['debt']['item']
    has_loans = debt['existingLoans'] is True
    documented = debt['existingLoans'] is not None
    valid_track = debt['repaymentTrack'] not in ('', 'unknown')
    matches = {
        'hasExistingLoans': documented,
        'loanListAvailable': has_loans and bool(debt['loanListAvailable']),
        'canServiceNewLoan': bool(debt['canServiceNewLoan']),
        'repaymentHistoryQuality': has_loans and valid_track and debt['repaymentTrack'] == 'good',
        'loansSourceBankNature': has_loans and valid_track,
    }
    score = item if documented else 0
    if has_loans:
        for key in ('loanListAvailable', 'repaymentHistoryQuality', 'loansSourceBankNature'):
            if matches[key]:
                score += item
    return min(score, WEIGHTS['debt']['max']), matches


def _score_end_use(end_use):
    weights = WEIGHTS['endUse']
    matches = {
        'agreementValueAvailable': _present(end_use['agreementValue']),
        'advancePaidCashOrBankAmount': _present(end_use['advancePaid']),
        'willOccupyPostPurchase': bool(end_use['willOccupy']),
        'mortgageFundsUse': _present(end_use['mortgageFundsUse']),
        'additionalUseInformation': _present(end_use['purpose']),
    }
    score = 0
    if matches['additionalUseInformation']:
        score += weights['purposeOfLoan']
    if matches['agreementValueAvailable']:
        score += weights['agreementValue']
    if matches['willOccupyPostPurchase']:
        score += weights['willOccupy']
    return min(score, weights['max']), matches


def _score_references(references):
    weights = WEIGHTS['references']
    matches = {
        'personalRefNeighbours': bool(references['personalCheck']),
        'businessRefBuyersSellers': bool(references['businessCheck']),
        'invoiceVerification': bool(references['invoiceVerified']),
    }
    score = 0
    if matches['personalRefNeighbours']:
        score += weights['personalCheck']
    if matches['businessRefBuyersSellers']:
        score += weights['businessCheck']
    if matches['invoiceVerification']:
        score += weights['invoiceVerified']
    return min(score, weights['max']), matches


def score_applicant(applicant):
    personal, personal_matches = _score_personal(applicant['personal'])
    business, business_matches = _score_business(applicant['business'], applicant['debt'])
    banking, banking_matches = _score_banking(applicant['banking'])
    networth, networth_matches = _score_networth(applicant['networth'])
    debt, debt_matches = _score_debt(applicant['debt'])
    end_use, end_use_matches = _score_end_use(applicant['endUse'])
    references, reference_matches = _score_references(applicant['references'])

    warnings = []
    if personal == 0:
        warnings.append('Personal details not verified')
    if business == 0:
        warnings.append('Business details not verified')
    if banking == 0:
        warnings.append('Banking details not verified')
    if networth == 0:
        warnings.append('Networth details not verified')
    if end_use == 0:
        warnings.append('End use purpose not verified')
    if references == 0:
        warnings.append('Reference checks pending')

    section_scores = {
        'personal': _r2(personal),
        'business': _r2(business),
        'banking': _r2(banking),
        'networth': _r2(networth),
        'existingDebt': _r2(debt),
        'endUse': _r2(end_use),
        'referenceChecks': _r2(references),
    }
    total = _r2(personal + business + banking + networth + debt + end_use + references)

    breakdown = dict(section_scores)
    breakdown.update({
        'personalMatches': personal_matches,
        'businessMatches': business_matches,
        'bankingMatches': banking_matches,
        'networthMatches': networth_matches,
        'debtMatches': debt_matches,
        'endUseMatches': end_use_matches,
        'referenceMatches': reference_matches,
    })

    scores = dict(section_scores)
    scores['total'] = total
    return {'scores': scores, 'breakdown': breakdown, 'warnings': warnings}


def score_draft(draft):
    applicant = map_draft_to_applicant(draft)
    logger.debug("Mapped applicant for %s: %s", draft.get('leadId'), applicant)
    result = score_applicant(applicant)
    logger.info("Deterministic score for %s: total=%s", draft.get('leadId'), result['scores']['total'])
    if result['warnings']:
        logger.info("Scoring warnings for %s: %s", draft.get('leadId'), result['warnings'])
    return result


PHOTO_WEIGHTS = {
    'personal': {'applicantPhoto': 5, 'selfieWithVO': 5},
    'business': {'signboard': 5, 'proprietorName': 4, 'contactVisible': 3, 'activeOperations': 4,
                 'staffVisible': 3, 'stockInventory': 3},
    'banking': {'upiQR': 4, 'multipleQR': 2, 'bankEvidence': 2},
    'endUse': {'premises': 4, 'workingCapital': 3, 'equipment': 3},
    'quality': {'gpsTimestamp': 4, 'locationConsistent': 3, 'timeSequence': 3},
}


def calculate_photo_score(checklist):
    """Score a photo evidence checklist; only items set to ``True`` earn points."""
    result = {}
    for section, weights in PHOTO_WEIGHTS.items():
        items = checklist.get(section) or {}
        if not isinstance(items, dict):
            items = {}
        result[section] = sum(points for key, points in weights.items() if items.get(key) is True)

    total = sum(result.values())
    max_total = sum(sum(weights.values()) for weights in PHOTO_WEIGHTS.values())
    result.update({
        'total': total,
        'maxTotal': max_total,
        'percentage': round_half_up(total / max_total * 100),
    })
    return result
