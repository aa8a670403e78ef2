"""Regex based comprehensive scoring of report text.

Used whenever the AI scorer is not configured. Produces the same result
shape as ``ai_service.score_comprehensive_with_ai``.
"""
import logging
import re

logger = logging.getLogger(__name__)


def _compile(*patterns):
    return [re.compile(p, re.IGNORECASE) for p in patterns]


PERSONAL_PATTERNS = {
    'selfEducation': _compile(r'education[:\s]*([^\n,]+)', r'qualification[:\s]*([^\n,]+)',
                              r'educated[:\s]*([^\n,]+)', r'graduate', r'post[- ]?graduate',
                              r'degree', r'diploma', r'10th|12th|matriculat'),
    'spouseName': _compile(r'spouse[:\s]*([^\n,]+)', r'wife[:\s]*([^\n,]+)',
                           r'husband[:\s]*([^\n,]+)', r'married to[:\s]*([^\n,]+)'),
    'spouseEducation': _compile(r'spouse.*education[:\s]*([^\n,]+)', r'wife.*education',
                                r'husband.*education'),
    'spouseEmployment': _compile(r'spouse.*employ|spouse.*occupation|spouse.*work|wife.*work|husband.*work',
                                 r'spouse.*job'),
    'kids': _compile(r'child|children|son|daughter|kid|dependent'),
    'kidsEducation': _compile(r'child.*educat|son.*educat|daughter.*educat|kid.*school|child.*study'),
    'kidsSchool': _compile(r'school[:\s]*([^\n,]+)', r'college[:\s]*([^\n,]+)', r'studying at'),
    'residenceVintage': _compile(r'resid.*since|stay.*since|living.*since|(\d+)\s*years?\s*(at|in|of)\s*residen',
                                 r'residence\s*vintage'),
    'monthlyRent': _compile(r'rent[:\s]*(?:Rs\.?|INR|₹)?\s*([\d,]+)', r'monthly\s*rent'),
}

BUSINESS_PATTERNS = {
    'businessName': _compile(r'business\s*name[:\s]*([^\n]+)', r'firm\s*name[:\s]*([^\n]+)',
                             r'company\s*name[:\s]*([^\n]+)', r'entity\s*name[:\s]*([^\n]+)'),
    'natureOfBusiness': _compile(r'nature\s*of\s*business[:\s]*([^\n]+)', r'business\s*type[:\s]*([^\n]+)',
                                 r'type\s*of\s*business'),
    'existence': _compile(r'exist.*since|establish.*since|operat.*since|(\d+)\s*years?\s*(in|of)\s*business'),
    'licenses': _compile(r'licen[sc]e|registration|gst|pan|udyam|msme|trade\s*licen|shop\s*act'),
    'experience': _compile(r'experience|expertise|years?\s*in\s*business'),
    'vision': _compile(r'vision|plan|growth|expansion|future'),
    'employees': _compile(r'employee|staff|worker|labour|(\d+)\s*people\s*work'),
    'turnover': _compile(r'turnover[:\s]*(?:Rs\.?|INR|₹)?\s*([\d,\.]+)\s*(lakh|lac|cr|crore)?',
                         r'monthly\s*sales'),
    'clients': _compile(r'client|customer|buyer|seller'),
    'activity': _compile(r'active\s*operation|business\s*activity|visit.*observed|during\s*visit'),
    'income': _compile(r'income[:\s]*(?:Rs\.?|INR|₹)?\s*([\d,\.]+)', r'monthly\s*income', r'net\s*profit'),
    'seasonality': _compile(r'seasonal|peak\s*season|off[- ]?season|fluctuat'),
    'infrastructure': _compile(r'infrastructure|premises|factory|office\s*space|godown|warehouse'),
    'manufacturing': _compile(r'manufactur|production|factory|plant'),
    'trading': _compile(r'trad(e|ing)|wholesale|retail|shop|store|dealer'),
    'service': _compile(r'service|consultancy|IT|software|contractor'),
}

MFG_PATTERNS = {
    'rawMaterial': _compile(r'raw\s*material|sourcing|procurement'),
    'processFlow': _compile(r'process\s*flow|production\s*process'),
    'capacity': _compile(r'capacity|utiliz'),
    'machinery': _compile(r'machine|equipment|automation'),
    'inventory': _compile(r'inventory|stock|fifo|lifo'),
    'qualityControl': _compile(r'quality\s*control|qa|qc|iso'),
}

TRADING_PATTERNS = {
    'productRange': _compile(r'product\s*range|variety|assortment'),
    'purchaseCycle': _compile(r'purchase.*cycle|sales.*cycle|credit\s*period'),
    'warehouse': _compile(r'warehouse|godown|stock.*seen'),
}

SERVICE_PATTERNS = {
    'documentation': _compile(r'document|record|maintain'),
    'technology': _compile(r'technology|software|system|it\s*infra'),
    'contracts': _compile(r'contract|agreement|client.*list'),
    'contractBased': _compile(r'contract\s*based|retainer|project\s*based'),
}

BANKING_PATTERNS = {
    'bankerName': _compile(r'bank[:\s]*([^\n,]+)', r'banker[:\s]*([^\n,]+)', r'primary\s*bank',
                           r'hdfc|icici|sbi|axis|kotak|yes\s*bank|idfc|bandhan|pnb|bob|union|canara'),
    'turnoverCredited': _compile(r'(\d+)[\s%]*(?:of\s*)?turnover.*credit|credit.*(\d+)[\s%]', r'turnover.*routed'),
    'tenure': _compile(r'banking\s*(?:relation|tenure|since)|account.*since|(\d+)\s*years?\s*(?:with|at)\s*bank'),
    'emisRouted': _compile(r'emi.*routed|emi.*debit|loan\s*emi.*bank'),
    'qrCode': _compile(r'qr\s*code|upi|phonepe|gpay|paytm|bhim'),
}

NETWORTH_PATTERNS = {
    'properties': _compile(r'property|properties|land|plot|flat|house|apartment|real\s*estate'),
    'vehicles': _compile(r'vehicle|car|bike|scooter|two[- ]?wheeler|four[- ]?wheeler'),
    'investments': _compile(r'invest|fd|fixed\s*deposit|mutual\s*fund|shares|stock|gold|lic|insurance'),
    'businessPlace': _compile(r'own\s*business\s*place|office\s*owned|shop\s*owned|factory\s*owned'),
    'totalNetworth': _compile(r'net\s*worth[:\s]*(?:Rs\.?|INR|₹)?\s*([\d,\.]+)', r'total\s*asset'),
}

DEBT_PATTERNS = {
    'hasLoans': _compile(r'existing\s*loan|current\s*loan|outstanding|emi|debt'),
    'loanList': _compile(r'loan\s*(?:from|with|at)[:\s]*([^\n]+)', r'borrowing'),
    'serviceability': _compile(r'can\s*service|repay.*capacity|sufficient\s*income'),
    'repaymentHistory': _compile(r'repayment|cibil|credit\s*score|payment\s*history|no\s*default'),
    'loanSource': _compile(r'loan.*from.*bank|loan.*from.*nbfc|loan.*from.*fintech'),
}

ENDUSE_PATTERNS = {
    'agreementValue': _compile(r'agreement\s*value[:\s]*(?:Rs\.?|INR|₹)?\s*([\d,\.]+)', r'property\s*value'),
    'advancePaid': _compile(r'advance\s*paid[:\s]*(?:Rs\.?|INR|₹)?\s*([\d,\.]+)', r'down\s*payment'),
    'willOccupy': _compile(r'will\s*occupy|self[- ]?occup|personal\s*use|own\s*stay'),
    'mortgageUse': _compile(r'mortgage.*for|loan.*for|end\s*use|purpose.*loan'),
    'additionalInfo': _compile(r'additional.*use|other.*purpose'),
}

REFERENCE_PATTERNS = {
    'personalRef': _compile(r'neighbour|neighbor|relative|family\s*reference|personal\s*reference'),
    'businessRef': _compile(r'buyer|seller|supplier|vendor|customer\s*reference|business\s*reference'),
    'invoices': _compile(r'invoice|bill|receipt|purchase\s*order|sales\s*order'),
}

OWNED_RESIDENCE = re.compile(r'own\s*house|owned|self[- ]?owned', re.IGNORECASE)
RENTED_RESIDENCE = re.compile(r'rent(ed|al)', re.IGNORECASE)
LEADING_FLOAT = re.compile(r'[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')

RUBRIC = {
    'personal': {
        'selfEducation': 1.5, 'spouseName': 1.5, 'spouseEducation': 1.5, 'spouseEmployment': 1.5,
        'mentionAboutKids': 1.5, 'kidsEducation': 1.5, 'kidsSchool': 1.5, 'residenceVintage': 1.5,
        'monthlyRentIfRented': 1.5, 'residenceOwnedOrRented': 1.5,
    },
    'businessCore': {
        'businessName': 2, 'natureOfBusiness': 2, 'existenceCurrentPlace': 2, 'licensesRegistrations': 2,
        'promoterExperienceQualifications': 2, 'strategicVisionClarity': 2, 'employeesSeen': 2,
        'monthlyTurnover': 2, 'clientListConcentrationRisk': 2, 'activityDuringVisit': 2,
        'monthlyIncome': 2, 'seasonality': 1, 'infraSupportsTurnover': 1,
    },
    'manufacturing': {
        'mfgRawMaterialSourcingStorage': 1, 'mfgProcessFlow': 1, 'mfgCapacityVsUtilization': 1,
        'mfgMachineryMakeAutomationMaintenance': 1, 'mfgInventoryFifoAging': 1, 'mfgQualityControl': 1,
    },
    'trading': {
        'tradingProductRangeInventoryMovement': 2, 'tradingPurchaseSalesCycle': 2, 'tradingWarehouseStockSeen': 2,
    },
    'service': {
        'svcDocumentationOfDelivery': 1.5, 'svcTechnologySystems': 1.5,
        'svcClientListContractsRevenueModel': 1.5, 'svcContractBasedOrWalkin': 1.5,
    },
    'banking': {
        'primaryBankerName': 3, 'turnoverCreditedPercent': 3, 'bankingTenure': 3,
        'emisRoutedBank': 3, 'qrCodeSpotted': 3,
    },
    'networth': {
        'propertiesOwned': 2, 'vehiclesOwned': 2, 'otherInvestments': 2,
        'businessPlaceOwned': 2, 'totalNetworthAvailable': 2,
    },
    'debt': {
        'hasExistingLoans': 2, 'loanListAvailable': 2, 'canServiceNewLoan': 2,
        'repaymentHistoryQuality': 2, 'loansSourceBankNature': 2,
    },
    'endUse': {
        'agreementValueAvailable': 2, 'advancePaidCashOrBankAmount': 2, 'willOccupyPostPurchase': 2,
        'mortgageFundsUse': 2, 'additionalUseInformation': 2,
    },
    'references': {
        'personalRefNeighbours': 3.33, 'businessRefBuyersSellers': 3.33, 'invoiceVerification': 3.34,
    },
}


def _match_value(match):
    if match.re.groups and match.group(1):
        return match.group(1)
    return match.group(0)


def match_pattern(text, patterns):
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return _match_value(match)
    return None


def has_pattern(text, patterns):
    return any(p.search(text) for p in patterns)


def extract_number(text, patterns):
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            num = LEADING_FLOAT.match(re.sub(r'[,\s]', '', _match_value(match)))
            if num:
                return float(num.group(0))
    return None


def detect_business_type(text):
    if has_pattern(text, BUSINESS_PATTERNS['manufacturing']):
        return 'manufacturing'
    if has_pattern(text, BUSINESS_PATTERNS['trading']):
        return 'trading'
    if has_pattern(text, BUSINESS_PATTERNS['service']):
        return 'service'
    return None


def _flags(text, patterns):
    return {key: has_pattern(text, pats) for key, pats in patterns.items()}


def extract_matches(pdf_text):
    """Extract the boolean field matches for every rubric section."""
    text = pdf_text.lower()
    mfg = _flags(text, MFG_PATTERNS)
    trading = _flags(text, TRADING_PATTERNS)
    service = _flags(text, SERVICE_PATTERNS)
    ownership = 'Owned' if OWNED_RESIDENCE.search(text) else ('Rented' if RENTED_RESIDENCE.search(text) else None)

    personal = {
        'selfEducation': bool(match_pattern(text, PERSONAL_PATTERNS['selfEducation'])),
        'spouseName': bool(match_pattern(text, PERSONAL_PATTERNS['spouseName'])),
        'spouseEducation': bool(match_pattern(text, PERSONAL_PATTERNS['spouseEducation'])),
        'spouseEmployment': bool(match_pattern(text, PERSONAL_PATTERNS['spouseEmployment'])),
        'mentionAboutKids': has_pattern(text, PERSONAL_PATTERNS['kids']),
        'kidsEducation': bool(match_pattern(text, PERSONAL_PATTERNS['kidsEducation'])),
        'kidsSchool': bool(match_pattern(text, PERSONAL_PATTERNS['kidsSchool'])),
        'residenceVintage': bool(match_pattern(text, PERSONAL_PATTERNS['residenceVintage'])),
        'monthlyRentIfRented': extract_number(text, PERSONAL_PATTERNS['monthlyRent']) is not None,
        'residenceOwnedOrRented': ownership is not None,
    }
    business = {
        'businessName': bool(match_pattern(text, BUSINESS_PATTERNS['businessName'])),
        'natureOfBusiness': bool(match_pattern(text, BUSINESS_PATTERNS['natureOfBusiness'])),
        'existenceCurrentPlace': extract_number(text, BUSINESS_PATTERNS['existence']) is not None,
        'licensesRegistrations': has_pattern(text, BUSINESS_PATTERNS['licenses']),
        'promoterExperienceQualifications': bool(match_pattern(text, BUSINESS_PATTERNS['experience'])),
        'strategicVisionClarity': bool(match_pattern(text, BUSINESS_PATTERNS['vision'])),
        'employeesSeen': extract_number(text, BUSINESS_PATTERNS['employees']) is not None,
        'monthlyTurnover': extract_number(text, BUSINESS_PATTERNS['turnover']) is not None,
        'clientListConcentrationRisk': has_pattern(text, BUSINESS_PATTERNS['clients']),
        'activityDuringVisit': has_pattern(text, BUSINESS_PATTERNS['activity']),
        'monthlyIncome': extract_number(text, BUSINESS_PATTERNS['income']) is not None,
        'seasonality': bool(match_pattern(text, BUSINESS_PATTERNS['seasonality'])),
        'infraSupportsTurnover': bool(match_pattern(text, BUSINESS_PATTERNS['infrastructure'])),
        'mfgRawMaterialSourcingStorage': mfg['rawMaterial'],
        'mfgProcessFlow': mfg['processFlow'],
        'mfgCapacityVsUtilization': mfg['capacity'],
        'mfgMachineryMakeAutomationMaintenance': mfg['machinery'],
        'mfgInventoryFifoAging': mfg['inventory'],
        'mfgQualityControl': mfg['qualityControl'],
        'tradingProductRangeInventoryMovement': trading['productRange'],
        'tradingPurchaseSalesCycle': trading['purchaseCycle'],
        'tradingWarehouseStockSeen': trading['warehouse'],
        'svcDocumentationOfDelivery': service['documentation'],
        'svcTechnologySystems': service['technology'],
        'svcClientListContractsRevenueModel': service['contracts'],
        'svcContractBasedOrWalkin': service['contractBased'],
    }
    banking = {
        'primaryBankerName': bool(match_pattern(text, BANKING_PATTERNS['bankerName'])),
        'turnoverCreditedPercent': extract_number(text, BANKING_PATTERNS['turnoverCredited']) is not None,
        'bankingTenure': bool(match_pattern(text, BANKING_PATTERNS['tenure'])),
        'emisRoutedBank': has_pattern(text, BANKING_PATTERNS['emisRouted']),
        'qrCodeSpotted': has_pattern(text, BANKING_PATTERNS['qrCode']),
    }
    networth = {
        'propertiesOwned': has_pattern(text, NETWORTH_PATTERNS['properties']),
        'vehiclesOwned': has_pattern(text, NETWORTH_PATTERNS['vehicles']),
        'otherInvestments': has_pattern(text, NETWORTH_PATTERNS['investments']),
        'businessPlaceOwned': has_pattern(text, NETWORTH_PATTERNS['businessPlace']),
        'totalNetworthAvailable': extract_number(text, NETWORTH_PATTERNS['totalNetworth']) is not None,
    }
    debt = {
        'hasExistingLoans': has_pattern(text, DEBT_PATTERNS['hasLoans']),
        'loanListAvailable': has_pattern(text, DEBT_PATTERNS['loanList']),
        'canServiceNewLoan': has_pattern(text, DEBT_PATTERNS['serviceability']),
        'repaymentHistoryQuality': bool(match_pattern(text, DEBT_PATTERNS['repaymentHistory'])),
        'loansSourceBankNature': has_pattern(text, DEBT_PATTERNS['loanSource']),
    }
    end_use = {
        'agreementValueAvailable': extract_number(text, ENDUSE_PATTERNS['agreementValue']) is not None,
        'advancePaidCashOrBankAmount': extract_number(text, ENDUSE_PATTERNS['advancePaid']) is not None,
        'willOccupyPostPurchase': has_pattern(text, ENDUSE_PATTERNS['willOccupy']),
        'mortgageFundsUse': bool(match_pattern(text, ENDUSE_PATTERNS['mortgageUse'])),
        'additionalUseInformation': bool(match_pattern(text, ENDUSE_PATTERNS['additionalInfo'])),
    }
    references = {
        'personalRefNeighbours': has_pattern(text, REFERENCE_PATTERNS['personalRef']),
        'businessRefBuyersSellers': has_pattern(text, REFERENCE_PATTERNS['businessRef']),
        'invoiceVerification': has_pattern(text, REFERENCE_PATTERNS['invoices']),
    }
    return {
        'businessType': detect_business_type(text),
        'personalMatches': personal,
        'businessMatches': business,
        'bankingMatches': banking,
        'networthMatches': networth,
        'debtMatches': debt,
        'endUseMatches': end_use,
        'referenceMatches': references,
    }


def score_boolean_section(matches, rubric, maximum):
    score = sum(weight for key, weight in rubric.items() if matches.get(key) is True)
    return min(round(score * 100) / 100, maximum)


def _fmt(value):
    return f"{value:g}"


def score_comprehensive_rule_based(pdf_text, lead_id):
    logger.info("[Rule Scoring - %s] Starting rule-based scoring, text length: %d", lead_id, len(pdf_text))
    extracted = extract_matches(pdf_text)
    business_matches = extracted['businessMatches']

    personal = score_boolean_section(extracted['personalMatches'], RUBRIC['personal'], 15)
    business = score_boolean_section(business_matches, RUBRIC['businessCore'], 24)
    business_type = extracted['businessType']
    if business_type:
        business += score_boolean_section(business_matches, RUBRIC[business_type], 6)
    business = min(business, 30)
    banking = score_boolean_section(extracted['bankingMatches'], RUBRIC['banking'], 15)
    networth = score_boolean_section(extracted['networthMatches'], RUBRIC['networth'], 10)
    debt = score_boolean_section(extracted['debtMatches'], RUBRIC['debt'], 10)
    end_use = score_boolean_section(extracted['endUseMatches'], RUBRIC['endUse'], 10)
    references = score_boolean_section(extracted['referenceMatches'], RUBRIC['references'], 10)

    total = round((personal + business + banking + networth + debt + end_use + references) * 100) / 100
    rationale = (
        f"Rule-based scoring completed. Total: {_fmt(total)}/100. "
        f"Personal: {_fmt(personal)}/15, Business: {_fmt(business)}/30, Banking: {_fmt(banking)}/15, "
        f"Networth: {_fmt(networth)}/10, Debt: {_fmt(debt)}/10, EndUse: {_fmt(end_use)}/10, "
        f"References: {_fmt(references)}/10."
    )
    logger.info("[Rule Scoring - %s] %s", lead_id, rationale)

    return {
        'personal': personal,
        'business': business,
        'banking': banking,
        'networth': networth,
        'existingDebt': debt,
        'endUse': end_use,
        'referenceChecks': references,
        'personalMatches': extracted['personalMatches'],
        'businessMatches': business_matches,
        'bankingMatches': extracted['bankingMatches'],
        'networthMatches': extracted['networthMatches'],
        'debtMatches': extracted['debtMatches'],
        'endUseMatches': extracted['endUseMatches'],
        'referenceMatches': extracted['referenceMatches'],
        'rationale': rationale,
    }
