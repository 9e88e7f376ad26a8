"""
Speech Path Dash: gestione studio (pazienti, sedute, fatturazione).

Struttura:
- config.py       : settings da ambiente (.env) e logging
- errors.py       : ValidationError / PersistenceError / ConfigError
- db.py           : engine e sessioni SQLAlchemy (gateway locale)
- models.py       : enum di dominio e tabelle ORM
- entities.py     : entita' tipizzate lette dal gateway
- validators.py   : validazione input pazienti e sedute
- gateway.py      : contratto del gateway (REST hosted / SQL locale)
- repositories.py : scritture e letture di pazienti e sedute
- reports.py      : statistiche giornaliere, formattazione, bozze fattura
- controllers.py  : macchine a stati delle sezioni UI
- seed.py         : dati demo
"""
