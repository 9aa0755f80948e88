"""
User-facing message catalogue.

Every error kind has its own human-readable message per locale.
Templates use str.format placeholders filled from the error's public params.
Unknown locales fall back to English; unknown keys fall back to the key.
"""

from __future__ import annotations

from typing import Any

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "configuration": "The AI service is not configured. Please contact support.",
        "authentication": "Invalid or missing API key.",
        "project_not_found": "Project not found.",
        "media_not_found": "Image not found.",
        "validation": "The submitted data is invalid. Please check all fields.",
        "invalid_transition": "This action is not allowed in the project's current state.",
        "already_generated": "The website has already been generated. Use the editor or content update instead.",
        "not_generated": "The website must be generated first.",
        "project_cancelled": "This project's subscription is cancelled. Renew it to make changes.",
        "generation_in_progress": "A generation is already in progress for this project.",
        "already_published": "The site is already published. Use republish to push content changes.",
        "not_published": "The site must be published first.",
        "no_custom_domain": "This project has no custom domain.",
        "domain_in_use": "This domain is already in use by another project.",
        "nothing_to_undo": "There are no edits to undo.",
        "insufficient_tokens": "Not enough tokens. Required: {tokens_needed}, remaining: {tokens_remaining}.",
        "rate_limited": "Too many requests. Please try again later.",
        "timeout": "Generation took too long. Please try again.",
        "invalid_output": "The AI did not return a valid page. Try again or rephrase your request.",
        "upstream": "An external service is temporarily unavailable. Please try again.",
        "edit_conflict": "The page changed while your edit was running. Please try again.",
        "duplicate_purchase": "This purchase has already been credited.",
        "edit_applied": "Edit applied.",
        "no_changes": "No content changes detected.",
    },
    "hr": {
        "configuration": "AI sustav nije konfiguriran.",
        "authentication": "Neispravan ili nedostaje API ključ.",
        "project_not_found": "Projekt nije pronađen.",
        "media_not_found": "Slika nije pronađena.",
        "validation": "Podaci forme nisu ispravni. Molimo provjerite sva polja.",
        "invalid_transition": "Ova radnja nije dopuštena u trenutnom stanju projekta.",
        "already_generated": "Web stranica je već generirana. Koristite editor ili ažuriranje sadržaja.",
        "not_generated": "Web stranica mora biti prvo generirana.",
        "project_cancelled": "Pretplata za ovaj projekt je otkazana. Obnovite je za izmjene.",
        "generation_in_progress": "Generiranje je već u tijeku.",
        "already_published": "Stranica je već objavljena. Koristite ponovnu objavu.",
        "not_published": "Stranica mora biti prvo objavljena.",
        "no_custom_domain": "Projekt nema vlastitu domenu.",
        "domain_in_use": "Domena je već u upotrebi.",
        "nothing_to_undo": "Nema izmjena za poništiti.",
        "insufficient_tokens": "Nemate dovoljno tokena. Potrebno: {tokens_needed}, Preostalo: {tokens_remaining}",
        "rate_limited": "Previše zahtjeva. Pokušajte ponovno za sat vremena.",
        "timeout": "Generiranje je predugo trajalo. Pokušajte ponovno.",
        "invalid_output": "AI nije vratio ispravan HTML. Pokušajte ponovno ili reformulirajte zahtjev.",
        "upstream": "Vanjski servis trenutno nije dostupan. Pokušajte ponovno.",
        "edit_conflict": "Stranica se promijenila tijekom izmjene. Pokušajte ponovno.",
        "duplicate_purchase": "Ova kupnja je već evidentirana.",
        "edit_applied": "Izmjena primijenjena.",
        "no_changes": "Nema promjena u sadržaju.",
    },
}


def render(key: str, locale: str = DEFAULT_LOCALE, **params: Any) -> str:
    """Look up and format a message, falling back to English."""
    catalogue = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]
    template = catalogue.get(key) or MESSAGES[DEFAULT_LOCALE].get(key, key)
    try:
        return template.format(**params)
    except (KeyError, IndexError):
        return template
