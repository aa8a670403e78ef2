def register_routes(app):
    from auditguard.routes.auth import auth_bp
    from auditguard.routes.reports import reports_bp
    from auditguard.routes.associates import associates_bp
    from auditguard.routes.mis import mis_bp
    from auditguard.routes.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(associates_bp)
    app.register_blueprint(mis_bp)
    app.register_blueprint(admin_bp)
