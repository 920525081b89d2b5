"""
Tests for Application: service wiring, startup and request handling.
"""

import json
import logging

import pytest

from perch import Application
from perch.config import AccessLogConfig, LoginConfig, WebConfig
from perch.controller import GET, POST, CsrfToken, LoginOnly, RequestMapping, controller
from perch.di import Container
from perch.faults import AnnotationFault
from perch.routing import Router
from perch.security import DefaultLoginUrlBuilder, LoginUrlBuilder

from tests.conftest import Tagged, make_request


class Greeter:
    def greet(self, name: str) -> str:
        return f"hello {name}"


def quiet_config(**kwargs) -> WebConfig:
    return WebConfig(access_log=AccessLogConfig(enabled=False), **kwargs)


class TestServiceWiring:

    def test_config_sections_registered(self, registry):
        config = quiet_config()
        app = Application(config, registry=registry)

        assert app.container.resolve(WebConfig) is config
        assert app.container.resolve(LoginConfig) is config.login
        assert app.container.resolve(Router) is app.router
        assert app.container.resolve(Container) is app.container

    def test_login_url_builder_from_config(self, registry):
        app = Application(quiet_config(login=LoginConfig(login_url="/signin", redirect_param="next")), registry=registry)
        builder = app.container.resolve(LoginUrlBuilder)

        assert isinstance(builder, DefaultLoginUrlBuilder)
        assert builder.login_url == "/signin"
        assert builder.redirect_param == "next"

    def test_existing_registrations_kept(self, registry):
        container = Container()
        custom = DefaultLoginUrlBuilder("/sso")
        container.register_instance(LoginUrlBuilder, custom)

        app = Application(quiet_config(), container=container, registry=registry)
        assert app.container.resolve(LoginUrlBuilder) is custom

    def test_access_log_middleware_first(self, registry):
        extra = Tagged("extra")
        app = Application(WebConfig(), registry=registry, middleware=[extra])
        assert type(app.middleware[0]).__name__ == "AccessLogMiddleware"
        assert app.middleware[1] is extra

    def test_access_log_disabled(self, registry):
        app = Application(quiet_config(), registry=registry)
        assert app.middleware == []


class TestStartup:

    def test_startup_registers_controllers(self, registry):
        @controller(registry=registry)
        @RequestMapping("/greet")
        class GreetController:
            def __init__(self, greeter: Greeter):
                self.greeter = greeter

            @GET("/{name}", name="greet")
            async def greet(self, ctx):
                return {"message": self.greeter.greet(ctx.params["name"])}

        app = Application(quiet_config(context_url="/app"), registry=registry)
        app.startup()

        assert app.started
        assert [r.pattern for r in app.router.routes] == ["/app/greet/{name}"]
        assert app.router.url_for("greet", name="bob") == "/app/greet/bob"

    def test_startup_is_idempotent(self, registry):
        @controller(registry=registry)
        class Health:
            @GET("/health")
            async def health(self, ctx):
                return "ok"

        app = Application(quiet_config(), registry=registry)
        app.startup()
        app.startup()
        assert len(app.router.routes) == 1

    def test_failed_startup_rolls_back(self, registry, caplog):
        @controller(registry=registry)
        class Good:
            @GET("/good")
            async def good(self, ctx):
                return "ok"

        @controller(registry=registry)
        @RequestMapping(["/a", "/b"])
        class Broken:
            @GET("/x")
            async def x(self, ctx):
                return "x"

        app = Application(quiet_config(), registry=registry)
        with caplog.at_level(logging.ERROR, logger="perch.app"):
            with pytest.raises(AnnotationFault):
                app.startup()

        assert app.router.routes == []
        assert not app.started
        assert "Startup failed" in caplog.text


class TestHandle:

    @pytest.mark.asyncio
    async def test_handle_starts_and_dispatches(self, registry):
        @controller(registry=registry)
        @RequestMapping("/greet")
        class GreetController:
            def __init__(self, greeter: Greeter):
                self.greeter = greeter

            @GET("/{name}")
            async def greet(self, ctx):
                return {"message": self.greeter.greet(ctx.params["name"])}

        app = Application(quiet_config(), registry=registry)
        response = await app.handle(make_request("GET", "/greet/ann"))

        assert app.started
        assert response.status == 200
        assert json.loads(response.body) == {"message": "hello ann"}

    @pytest.mark.asyncio
    async def test_not_found(self, registry):
        app = Application(quiet_config(), registry=registry)
        response = await app.handle(make_request("GET", "/missing"))
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_global_middleware_wraps_routing(self, registry):
        calls = []

        @controller(registry=registry)
        class Health:
            @GET("/health")
            async def health(self, ctx):
                calls.append("handler")
                return "ok"

        app = Application(quiet_config(), registry=registry)
        app.add_middleware(Tagged("outer", calls)).add_middleware(Tagged("inner", calls))
        await app.handle(make_request("GET", "/health"))

        assert calls == ["outer", "inner", "handler"]

    @pytest.mark.asyncio
    async def test_access_log_written(self, registry, caplog):
        @controller(registry=registry)
        class Health:
            @GET("/health")
            async def health(self, ctx):
                return "ok"

        app = Application(WebConfig(), registry=registry)
        with caplog.at_level(logging.INFO, logger="perch.access"):
            await app.handle(make_request("GET", "/health"))

        [record] = [r for r in caplog.records if r.name == "perch.access"]
        assert '"GET /health HTTP/1.1" 200' in record.getMessage()

    @pytest.mark.asyncio
    async def test_filters_applied_end_to_end(self, registry):
        @controller(registry=registry)
        @RequestMapping("/account")
        @CsrfToken()
        class AccountController:
            @GET("")
            async def show(self, ctx):
                return {"token": ctx.request.state["csrf_token"]}

            @POST("", name="account.update")
            @LoginOnly()
            async def update(self, ctx):
                return {"updated": True}

        app = Application(quiet_config(), registry=registry)

        rejected = await app.handle(make_request("POST", "/account"))
        assert rejected.status == 302
        assert rejected.headers["location"].startswith("/login?redirect=")

        request = make_request("POST", "/account")
        request.state["user"] = "alice"
        forbidden = await app.handle(request)
        assert forbidden.status == 403
        assert forbidden.headers["x-fault-code"] == "CSRF_VIOLATION"

        request = make_request("POST", "/account", headers={"X-CSRF-Token": "known"})
        request.state["user"] = "alice"
        request.state["session"] = {"_csrf_token": "known"}
        accepted = await app.handle(request)
        assert accepted.status == 200
        assert json.loads(accepted.body) == {"updated": True}

    @pytest.mark.asyncio
    async def test_csrf_cookie_from_get_accepted_by_post(self, registry):
        @controller(registry=registry)
        @CsrfToken()
        class FormController:
            @GET("/form")
            async def show(self, ctx):
                return {"token": ctx.request.state["csrf_token"]}

            @POST("/form")
            async def submit(self, ctx):
                return {"saved": True}

        app = Application(quiet_config(), registry=registry)

        issued = await app.handle(make_request("GET", "/form"))
        token = json.loads(issued.body)["token"]
        cookie = issued.headers["set-cookie"].split(";")[0]

        submitted = await app.handle(
            make_request("POST", "/form", headers={"Cookie": cookie, "X-CSRF-Token": token})
        )
        assert submitted.status == 200
        assert json.loads(submitted.body) == {"saved": True}
